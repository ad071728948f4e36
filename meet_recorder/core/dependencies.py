"""
Dependency injection for the Meet Recorder API.
Provides the services held on ``app.state`` to API endpoints.
"""

from fastapi import Depends, Request

from meet_recorder.services import RecordingManager


async def get_recording_manager(request: Request) -> RecordingManager:
    """
    Dependency injection for the RecordingManager.

    Returns:
        RecordingManager instance of the running application

    Raises:
        HTTPException: If the application was not wired with a manager
    """
    from meet_recorder.core.exceptions import HTTPInternalServerError

    manager = getattr(request.app.state, "recording_manager", None)
    if manager is None:
        raise HTTPInternalServerError("Recording manager not initialized")

    return manager


# Shared dependency marker for endpoint signatures
RecordingManagerDep = Depends(get_recording_manager)
