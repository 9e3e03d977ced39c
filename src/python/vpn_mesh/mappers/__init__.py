"""Resource mappers for converting mesh resource requests to Pulumi resources."""

from .aws import MAPPERS as AWS_MAPPERS
from .azure import MAPPERS as AZURE_MAPPERS
from .google import MAPPERS as GOOGLE_MAPPERS

MAPPERS = {**AWS_MAPPERS, **GOOGLE_MAPPERS, **AZURE_MAPPERS}

__all__ = ["MAPPERS"]
