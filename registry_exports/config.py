"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    supabase_anon_key: str = ""

    # Job record store: "supabase" or "memory"
    repository_backend: str = "memory"
    enforce_unique_inflight: bool = False

    # Tables
    analytics_jobs_table: str = "analytics_export_jobs"
    vendor_jobs_table: str = "vendor_order_export_jobs"
    profiles_table: str = "profiles"
    vendors_table: str = "vendors"

    # Export policy
    dedupe_window_minutes: int = 15
    dedupe_candidate_limit: int = 10
    list_page_size: int = 10

    # Roles
    analytics_admin_roles: List[str] = [
        "super_admin",
        "finance_admin",
        "operations_manager_admin",
        "customer_support_admin",
        "store_manager_admin",
        "marketing_admin",
    ]
    analytics_superuser_role: str = "super_admin"
    vendor_role: str = "vendor"

    # Server
    port: int = 8001
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
