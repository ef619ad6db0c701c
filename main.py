import logging

import uvicorn
from dotenv import load_dotenv
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()  # Load environment variables from a .env file

from fastapi import FastAPI
from api import api
from core.config import LOG_LEVEL

logging.basicConfig(
    level=LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

app = FastAPI(title="Image Resizer")



# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allows all origins
    allow_methods=["GET"],  # Solo lectura
    allow_headers=["*"],  # Allows all headers
)
app.include_router(api.router)


# Punto de entrada para ejecutar la aplicación
if __name__ == "__main__":
    uvicorn.run(
        "main:app",  # Módulo y nombre de la aplicación
        host="127.0.0.1",  # Solo interfaz local
        port=8000,  # Puerto por defecto
        reload=True,  # Recarga automática en desarrollo
        log_level=LOG_LEVEL.lower()  # Nivel de logs
    )
