import uvicorn

from roadmap_projection.config import ProjectionConfig
from roadmap_projection.logging_utils import configure_logging

if __name__ == "__main__":
    config = ProjectionConfig.from_env()
    configure_logging(config.log_level, config.log_dir)

    print("Starting Roadmap Projection API Server...")
    print("Docs available at: http://localhost:8000/docs")

    uvicorn.run(
        "roadmap_projection.api.server:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
