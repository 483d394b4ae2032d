"""
Infrastructure layer - external service integrations.

- storage: Object storage (R2/S3) clients and the set registry

These wrappers translate between boto3 responses and our domain models.
"""
