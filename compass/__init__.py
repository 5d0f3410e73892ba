"""
study-compass: spaced repetition and exam readiness.

Packages:
- core: domain models, topic status ladder, errors
- study: memory model, review scheduler, session aggregator, readiness predictor
- analytics: dashboard facade
- db: SQLAlchemy persistence of the app document
- integrations: question-generation client
- cli: typer commands
"""

__version__ = "1.0.0"
