from pydantic import BaseModel, Field
from typing import Dict, Any


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""
    status: str = Field(
        ...,
        description="Service status (ok, shutting_down)"
    )
    version: str = Field(
        ...,
        description="API version"
    )
    services: Dict[str, Any] = Field(
        ...,
        description="Status of individual services"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "ok",
                "version": "1.0.0",
                "services": {
                    "renderer": {
                        "closing": False,
                        "in_flight": 2,
                        "total_requests": 42,
                        "failed_requests": 1,
                        "browser": {
                            "running": True,
                            "starting": False,
                            "launches": 1,
                            "launch_failures": 0,
                            "disconnects": 0
                        }
                    }
                }
            }
        }
    }
