from printgen.clients.render_client import RenderFunctionClient
from printgen.clients.s3_client import S3ArtifactStore

__all__ = ["RenderFunctionClient", "S3ArtifactStore"]
