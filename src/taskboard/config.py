"""
設定管理モジュール

関連クラス:
  - server.context.AppContext: この設定からサービス群を組み立てる
  - sync.watcher.TaskFileWatcher: watcher 設定を使用
  - client.realtime.RealtimeSync: realtime 設定を使用
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "app_config.yaml"


@dataclass
class WatcherConfig:
    """tasks.json 監視設定"""

    debounce_seconds: float = 0.3
    stability_threshold_seconds: float = 0.1
    poll_interval_seconds: float = 0.05
    max_stability_wait_seconds: float = 2.0


@dataclass
class RealtimeConfig:
    """WebSocket 同期設定"""

    heartbeat_interval_seconds: float = 30.0
    reconnect_base_delay_seconds: float = 1.0
    reconnect_max_delay_seconds: float = 30.0
    reconnect_max_attempts: int = 10


@dataclass
class SearchConfig:
    """あいまい検索の既定値"""

    threshold: float = 0.3
    distance: int = 100
    min_match_char_length: int = 2


@dataclass
class ServerConfig:
    """HTTP サーバー設定"""

    host: str = "0.0.0.0"
    port: int = 5000
    cors_origins: tuple = ("*",)


@dataclass
class Config:
    """アプリケーション設定クラス"""

    project_root: str = "."

    watcher: WatcherConfig = None  # type: ignore
    realtime: RealtimeConfig = None  # type: ignore
    search: SearchConfig = None  # type: ignore
    server: ServerConfig = None  # type: ignore

    # ログ設定
    log_level: str = "INFO"
    log_file: str = "logs/taskboard.log"

    def __post_init__(self):
        """デフォルト値の初期化"""
        if self.watcher is None:
            self.watcher = WatcherConfig()
        if self.realtime is None:
            self.realtime = RealtimeConfig()
        if self.search is None:
            self.search = SearchConfig()
        if self.server is None:
            self.server = ServerConfig()

    @property
    def taskmaster_dir(self) -> Path:
        return Path(self.project_root) / ".taskmaster"

    @property
    def tasks_path(self) -> Path:
        return self.taskmaster_dir / "tasks" / "tasks.json"

    @property
    def issues_dir(self) -> Path:
        return self.taskmaster_dir / "issues"

    @property
    def attachments_dir(self) -> Path:
        return self.issues_dir / "attachments"

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "Config":
        """YAMLファイルから設定を読み込む

        Args:
            config_path: 設定ファイルパス（省略時は TASKBOARD_CONFIG または
                config/app_config.yaml）

        Returns:
            Config: 設定インスタンス。ファイルが無い場合は既定値
        """
        if config_path is None:
            env_path = os.getenv("TASKBOARD_CONFIG")
            config_path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH

        if not Path(config_path).exists():
            config = cls()
        else:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_data: Dict[str, Any] = yaml.safe_load(f) or {}
            config = cls._from_dict(yaml_data)

        root_override = os.getenv("PROJECT_ROOT")
        if root_override:
            config.project_root = root_override
        return config

    @classmethod
    def _from_dict(cls, yaml_data: Dict[str, Any]) -> "Config":
        project_data = yaml_data.get("project", {})
        watcher_data = yaml_data.get("watcher", {})
        realtime_data = yaml_data.get("realtime", {})
        reconnect_data = realtime_data.get("reconnect", {})
        search_data = yaml_data.get("search", {})
        server_data = yaml_data.get("server", {})
        log_data = yaml_data.get("log", {})

        return cls(
            project_root=project_data.get("root", "."),
            watcher=WatcherConfig(
                debounce_seconds=watcher_data.get("debounce_ms", 300) / 1000,
                stability_threshold_seconds=watcher_data.get("stability_threshold_ms", 100) / 1000,
                poll_interval_seconds=watcher_data.get("poll_interval_ms", 50) / 1000,
                max_stability_wait_seconds=watcher_data.get("max_stability_wait_ms", 2000) / 1000,
            ),
            realtime=RealtimeConfig(
                heartbeat_interval_seconds=realtime_data.get("heartbeat_interval_seconds", 30),
                reconnect_base_delay_seconds=reconnect_data.get("base_delay_ms", 1000) / 1000,
                reconnect_max_delay_seconds=reconnect_data.get("max_delay_ms", 30000) / 1000,
                reconnect_max_attempts=reconnect_data.get("max_attempts", 10),
            ),
            search=SearchConfig(
                threshold=search_data.get("threshold", 0.3),
                distance=search_data.get("distance", 100),
                min_match_char_length=search_data.get("min_match_char_length", 2),
            ),
            server=ServerConfig(
                host=server_data.get("host", "0.0.0.0"),
                port=server_data.get("port", 5000),
                cors_origins=tuple(server_data.get("cors_origins", ["*"])),
            ),
            log_level=log_data.get("level", "INFO"),
            log_file=log_data.get("file", "logs/taskboard.log"),
        )

    @classmethod
    def from_env(cls) -> "Config":
        """環境変数から設定を読み込む"""
        return cls(
            project_root=os.getenv("PROJECT_ROOT", "."),
            watcher=WatcherConfig(
                debounce_seconds=int(os.getenv("WATCH_DEBOUNCE_MS", "300")) / 1000,
            ),
            realtime=RealtimeConfig(
                heartbeat_interval_seconds=float(os.getenv("WS_HEARTBEAT_SECONDS", "30")),
            ),
            server=ServerConfig(
                host=os.getenv("HOST", "0.0.0.0"),
                port=int(os.getenv("PORT", "5000")),
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE", "logs/taskboard.log"),
        )
