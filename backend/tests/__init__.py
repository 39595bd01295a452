# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from courtbook.models.booking import Booking  # noqa: F401
