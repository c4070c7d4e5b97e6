# backend/run.py
import logging

from attendance_hub.core.config import settings
from attendance_hub.main import create_app

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s"
)

app = create_app()

if __name__ == "__main__":
    import uvicorn
    # Pass the app object to avoid module-name confusion
    uvicorn.run(app, host=settings.host, port=settings.port, reload=False)
