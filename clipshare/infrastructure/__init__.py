"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- identity: Session validation against the identity provider
- snowflake: Database persistence
- storage: Object storage (R2/S3)
- telemetry: Product analytics events

These wrappers translate between external formats and our domain models.
"""
