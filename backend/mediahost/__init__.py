"""Media Host Orchestrator backend.

Keeps per-account media folders and videos consistent between the metadata
database and the streaming hosts that store the files, and drives on-demand
video conversions on those hosts.

Modules:
    - core: Configuration, database, logging, metrics, Celery setup
    - modules.host: Streaming hosts and the remote command channel
    - modules.account: Account lookup for the calling user
    - modules.quality: Quality tiers and bitrate ceiling policy
    - modules.folder: Folder reconciliation and remote path resolution
    - modules.video: Video catalog and playlist references
    - modules.conversion: Conversion orchestration and status tracking
"""

__version__ = "0.1.0"
