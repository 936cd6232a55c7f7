"""
Configuration management for propgraph
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    
    # Data Paths
    movielens_dir: str = Field(default="data/ml-1m", description="Directory holding movies.dat, users.dat, ratings.dat")
    
    # Loading
    show_progress: bool = Field(default=True, description="Render rich progress while bulk-loading")
    
    # Store
    property_index_enabled: bool = Field(default=True, description="Maintain the (label, property, value) index")
    
    class Config:
        env_prefix = "PROPGRAPH_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# MovieLens 1M occupation codes (users.dat)
OCCUPATIONS = {
    0: "other",
    1: "academic/educator",
    2: "artist",
    3: "clerical/admin",
    4: "college/grad student",
    5: "customer service",
    6: "doctor/health care",
    7: "executive/managerial",
    8: "farmer",
    9: "homemaker",
    10: "K-12 student",
    11: "lawyer",
    12: "programmer",
    13: "retired",
    14: "sales/marketing",
    15: "scientist",
    16: "self-employed",
    17: "technician/engineer",
    18: "tradesman/craftsman",
    19: "unemployed",
    20: "writer",
}
