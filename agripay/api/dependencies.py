"""
Dependency injection for FastAPI.
"""
from typing import Annotated
from fastapi import Depends

from agripay.infrastructure.sentinel_hub_client import (
    SentinelHubClient,
    get_sentinel_hub_client,
)
from agripay.infrastructure.titiler_client import TiTilerClient, get_titiler_client
from agripay.services.domain.vegetation_indices import VegetationIndexCalculator
from agripay.services.application.vegetation_service import VegetationService


def get_index_calculator() -> VegetationIndexCalculator:
    """
    Dependency factory for VegetationIndexCalculator.

    Returns:
        VegetationIndexCalculator configured from settings
    """
    return VegetationIndexCalculator()


def get_vegetation_service(
    sentinel_client: Annotated[SentinelHubClient, Depends(get_sentinel_hub_client)],
) -> VegetationService:
    """
    Dependency factory for VegetationService.

    Args:
        sentinel_client: Sentinel Hub client (injected)

    Returns:
        VegetationService instance
    """
    return VegetationService(sentinel_client=sentinel_client)


# Type aliases for cleaner route signatures
IndexCalculatorDep = Annotated[VegetationIndexCalculator, Depends(get_index_calculator)]
VegetationServiceDep = Annotated[VegetationService, Depends(get_vegetation_service)]
TiTilerClientDep = Annotated[TiTilerClient, Depends(get_titiler_client)]
