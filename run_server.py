import uvicorn

from company_analyzer.config import settings
from company_analyzer.main import app

if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port)
