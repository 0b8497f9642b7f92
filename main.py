import uvicorn

from core.config import settings
from core.init_app import create_application

app = create_application()

if __name__ == "__main__":
    print(f"Starting {settings.PROJECT_NAME}...")
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
