"""Token gates: where stored access tokens come from.

Two stores are supported, a YAML credentials file (local runs) and the
Vertica token table filled by the OAuth callback service.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from loguru import logger

from ads_insights.core.config import DatabaseConfig
from ads_insights.core.constants import TOKEN_SCHEMA, TOKEN_TABLE
from ads_insights.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    TokenNotFoundError,
)
from ads_insights.domain.models import Token
from shared.connection.vertica import VerticaConnection

CREDENTIALS_SECTION = "facebook"


def parse_expiry(value: Any) -> Optional[datetime]:
    """Normalize a stored expiry to a datetime.

    Accepts datetimes, ISO-8601 strings and epoch seconds (the form Graph API
    returns in ``expires_at``). Zero and empty values mean "never expires".
    """
    if value is None or value == "" or value == 0:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    text = str(value).strip()
    if text.endswith(("Z", "z")):
        # fromisoformat only accepts "Z" from Python 3.11
        text = f"{text[:-1]}+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ConfigurationError(f"Unparseable token expiry: {value!r}") from None


class FileTokenGate:
    """Token gate reading a YAML credentials file.

    Expected layout::

        facebook:
          apps:
            "<app_id>":
              users:
                "<user_id>":
                  access_token: "..."
                  expires_at: 2026-12-31T00:00:00+00:00

    A user entry may also be the bare token string.
    """

    def __init__(self, credentials_file: Union[str, Path]):
        self.credentials_file = Path(credentials_file)
        self._apps = self._load()
        logger.info(f"FileTokenGate initialized from {self.credentials_file}")

    def _load(self) -> Dict[str, Any]:
        if not self.credentials_file.exists():
            raise ConfigurationError(
                f"Credentials file not found: {self.credentials_file}",
                details={"file": str(self.credentials_file)},
            )
        try:
            with open(self.credentials_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse credentials file: {e}",
                details={"file": str(self.credentials_file)},
            )

        section = data.get(CREDENTIALS_SECTION) or {}
        return {str(app_id): app or {} for app_id, app in (section.get("apps") or {}).items()}

    def fetch_token(self, user_id: str, app_id: str) -> Token:
        users = self._apps.get(str(app_id), {}).get("users") or {}
        entry = users.get(str(user_id))
        if not entry:
            raise TokenNotFoundError(user_id, app_id)

        if isinstance(entry, str):
            entry = {"access_token": entry}
        if not entry.get("access_token"):
            raise TokenNotFoundError(user_id, app_id)

        return Token(
            user_id=str(user_id),
            app_id=str(app_id),
            access_token=entry["access_token"],
            expires_at=parse_expiry(entry.get("expires_at")),
        )


class VerticaTokenGate:
    """Token gate reading the latest stored token from Vertica.

    Attributes:
        connection: Vertica connection factory
        schema: Schema of the token table
        table: Token table name
    """

    def __init__(
        self,
        config: Optional[DatabaseConfig] = None,
        schema: str = TOKEN_SCHEMA,
        table: str = TOKEN_TABLE,
        connection: Optional[VerticaConnection] = None,
    ):
        if connection is None:
            config = config or DatabaseConfig.from_env()
            connection = VerticaConnection(
                host=config.host,
                user=config.user,
                password=config.password,
                port=config.port,
                database=config.database,
            )
        self.connection = connection
        self.schema = schema
        self.table = table

    def fetch_token(self, user_id: str, app_id: str) -> Token:
        query = (
            f"SELECT ACCESS_TOKEN, EXPIRES_AT FROM {self.schema}.{self.table} "
            "WHERE USER_ID = %s AND APP_ID = %s "
            "ORDER BY ROW_LOADED_DATE DESC LIMIT 1"
        )
        try:
            with self.connection.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(query, (str(user_id), str(app_id)))
                result = cursor.fetchone()
        except Exception as e:
            raise DatabaseError(
                "Failed to read access token from Vertica",
                query=query,
                details={"user_id": user_id, "app_id": app_id, "error": str(e)},
            ) from e

        if not result or not result[0]:
            raise TokenNotFoundError(user_id, app_id)

        access_token, expires_at = result
        logger.info(f"Retrieved token from Vertica for user {user_id} (expires: {expires_at})")
        return Token(
            user_id=str(user_id),
            app_id=str(app_id),
            access_token=access_token,
            expires_at=parse_expiry(expires_at),
        )


def create_token_gate(
    store: str,
    credentials_file: Optional[Union[str, Path]] = None,
    database: Optional[DatabaseConfig] = None,
):
    """Build the token gate for a store name (``file`` or ``vertica``)."""
    store = (store or "file").lower()
    if store == "file":
        if not credentials_file:
            raise ConfigurationError("A credentials file is required for the file token store")
        return FileTokenGate(credentials_file)
    if store == "vertica":
        return VerticaTokenGate(database)
    raise ConfigurationError(
        f"Unknown token store: {store}",
        details={"allowed": ["file", "vertica"]},
    )
