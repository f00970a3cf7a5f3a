"""Módulo de configuración del backend CRM.

Proporciona lectura de variables de entorno para la base de datos, los
tokens JWT, la cuenta de administrador inicial y el servidor HTTP.

Formato esperado en CORS_ORIGINS:
  "https://a.example,https://b.example" o "*" para permitir cualquiera.
"""

import os
from pathlib import Path
from functools import lru_cache
from typing import List
from dotenv import load_dotenv

# parse_origins: Convierte la cadena cruda de orígenes CORS en una lista limpia.
def parse_origins(raw: str) -> List[str]:
    if not raw:
        return ["*"]
    origins = [item.strip() for item in raw.split(',') if item.strip()]
    return origins or ["*"]

# get_settings: Devuelve (cacheado) la instancia única de Settings.
@lru_cache
def get_settings():
    return Settings()

class Settings:
    """Agrupa todos los parámetros de configuración usados en la aplicación.

    Se inicializa leyendo variables de entorno. Incluye la URL del almacén,
    parámetros JWT y credenciales del administrador inicial.
    """
    def __init__(self):
        # Cargar .env local (aislado al directorio del módulo)
        base_dir = Path(__file__).resolve().parent
        load_dotenv(base_dir / '.env')

        # Almacén: una sola tabla; por defecto un SQLite junto al código.
        default_db_path = base_dir / 'crm.db'
        self.database_url = os.getenv('CRM_DB_URL', f"sqlite:///{default_db_path}")
        self.jwt_secret = os.getenv('JWT_SECRET', 'dev-secret-change')
        self.jwt_algorithm = os.getenv('JWT_ALG', 'HS256')
        # 7 días
        self.jwt_exp_minutes = int(os.getenv('JWT_EXP_MIN', '10080'))

        self.admin_email = os.getenv('ADMIN_EMAIL', 'admin@exceptionz.com')
        self.admin_password = os.getenv('ADMIN_PASSWORD', 'Exceptionz@9361')

        self.env_mode = os.getenv('ENV_MODE', 'production').lower()
        self.cors_origins = parse_origins(os.getenv('CORS_ORIGINS', '*'))
        self.port = int(os.getenv('PORT', '3000'))
        self.log_level = os.getenv('LOG_LEVEL', 'INFO').upper()

    @property
    def is_development(self) -> bool:
        return self.env_mode == 'development'
