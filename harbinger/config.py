from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # GitHub OAuth (device flow needs only the public client id)
    github_client_id: str = ""
    github_oauth_url: str = "https://github.com"
    github_api_url: str = "https://api.github.com"
    oauth_scopes: str = "repo"

    # HTTP
    http_timeout: float = 10.0

    # Caching
    catalog_cache_ttl_seconds: int = 300
    workflow_cache_ttl_seconds: int = 86400

    # Monitoring
    refresh_interval_seconds: float = 300.0
    workflow_run_limit: int = 10

    # Workflow detection batching
    detection_debounce_seconds: float = 0.1
    detection_batch_size: int = 5
    detection_batch_delay_seconds: float = 0.5

    # Credentials: "memory" or "file"
    credential_backend: str = "memory"
    credential_file: str = "./data/credentials.json"
    credential_service: str = "Harbinger"
    credential_account: str = "GitHubAccessToken"
    app_secret_key: str = "change-me-in-production"

    # Workflow detection results: "memory" or "file"
    workflow_cache_backend: str = "memory"
    workflow_cache_file: str = "./data/workflow_cache.json"

    # Monitored repositories: "memory" or "file"
    repository_backend: str = "memory"
    repositories_file: str = "./data/repositories.json"

    # Logging
    log_level: str = "info"

    @property
    def oauth_scope_list(self) -> list[str]:
        return [s for s in self.oauth_scopes.replace(",", " ").split() if s]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
