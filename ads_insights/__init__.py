"""
Ads insights module.
ETL pipeline for Facebook ad insights: resolves a user's ad accounts and ads,
fans out insights requests per period and breakdown, and loads the results
into Vertica.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists (important for local development)
load_dotenv()

# Module root
_ROOT = Path(os.path.dirname(__file__)).absolute()

__version__ = "1.0.0"
