# run.py
import uvicorn
import os
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

if __name__ == "__main__":
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", 3000))

    # create_app validates configuration before the server accepts requests
    uvicorn.run(
        "app.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=os.getenv("ENVIRONMENT", "development").lower() != "production",
    )
