import json
import boto3
import os
import time
from functools import wraps
from typing import Dict, Any
import logging

logger = logging.getLogger(__name__)

class SecretsManager:
    """
    Reads database credentials from AWS Secrets Manager, caching each
    secret for a short TTL so rotated credentials are picked up.
    """

    def __init__(self, region_name: str = None):
        self.region_name = region_name or os.environ.get('AWS_REGION', 'us-east-1')
        self._client = None
        self._cache = {}
        self._cache_timestamps = {}
        self._cache_ttl = 300  # seconds

    @property
    def client(self):
        """Lazily created secretsmanager client."""
        if self._client is None:
            session = boto3.session.Session()
            self._client = session.client(
                service_name='secretsmanager',
                region_name=self.region_name
            )
        return self._client

    def _time_based_cache(self, func):
        @wraps(func)
        def wrapper(secret_id: str) -> str:
            now = time.time()
            cache_key = f"{func.__name__}:{secret_id}"

            if (cache_key in self._cache and
                    now - self._cache_timestamps.get(cache_key, 0) < self._cache_ttl):
                logger.debug(f"Returning cached secret for {secret_id}")
                return self._cache[cache_key]

            logger.info(f"Fetching secret {secret_id}")
            try:
                result = func(secret_id)
            except Exception as e:
                # A stale value beats no value while the secret rotates
                if cache_key in self._cache:
                    logger.warning(f"Secret fetch failed for {secret_id}, using stale cache: {e}")
                    return self._cache[cache_key]
                raise
            self._cache[cache_key] = result
            self._cache_timestamps[cache_key] = now
            return result
        return wrapper

    def get_secret(self, secret_id: str) -> str:
        """
        Get a secret value, served from the TTL cache when fresh.

        Args:
            secret_id: The secret ID or ARN

        Returns:
            The secret value as a string
        """
        @self._time_based_cache
        def _fetch_secret(secret_id: str) -> str:
            try:
                response = self.client.get_secret_value(SecretId=secret_id)
            except Exception as e:
                logger.error(f"Failed to get secret {secret_id}: {e}")
                raise
            if 'SecretBinary' in response:
                return response['SecretBinary']
            return response['SecretString']

        return _fetch_secret(secret_id)

    def get_json_secret(self, secret_id: str) -> Dict[str, Any]:
        return json.loads(self.get_secret(secret_id))

    def get_db_credentials(self, secret_id: str = None) -> Dict[str, str]:
        """
        Username and password for the friend-graph database, read from the
        RDS credentials secret named by DATABASE_SECRETS_NAME.

        Raises:
            KeyError: If the secret has no username or password
        """
        secret_id = secret_id or os.environ.get('DATABASE_SECRETS_NAME', 'myspace/db-credentials')
        secret = self.get_json_secret(secret_id)
        missing = [key for key in ('username', 'password') if not secret.get(key)]
        if missing:
            raise KeyError(f"Secret {secret_id} is missing {', '.join(missing)}")
        return {'username': secret['username'], 'password': secret['password']}
