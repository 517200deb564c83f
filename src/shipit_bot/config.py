"""
Configuration Management

시스템 설정 관리
"""

import os
import yaml
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Tuple
from pathlib import Path
import logging


@dataclass
class GitHubConfig:
    """GitHub API 설정"""
    token: Optional[str] = None
    api_base_url: str = "https://api.github.com"
    timeout_seconds: int = 30
    max_concurrent_requests: int = 8


@dataclass
class AclConfig:
    """ACL 평가 설정"""
    directory: str = "acls"
    ref: str = "master"
    override_token: str = "ACLOVERRIDE"
    silent_override_token: str = "ACL_OVERRIDE_HASH"
    sync_teams: bool = True
    request_reviews: bool = True

    @property
    def override_tokens(self) -> Tuple[str, ...]:
        """인식하는 override 토큰 (우선순위 순)"""
        return tuple(t for t in (self.override_token, self.silent_override_token) if t)


@dataclass
class ServerConfig:
    """웹훅 서버 설정"""
    host: str = "0.0.0.0"
    port: int = 8000
    webhook_secret: Optional[str] = None
    debounce_seconds: float = 0.1


@dataclass
class LoggingConfig:
    """로깅 설정"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_path: Optional[str] = None
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class AppConfig:
    """전체 애플리케이션 설정"""
    github: GitHubConfig = field(default_factory=GitHubConfig)
    acl: AclConfig = field(default_factory=AclConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    debug: bool = False

    @classmethod
    def from_env(cls) -> "AppConfig":
        """환경 변수에서 설정 로드"""
        return cls(
            github=GitHubConfig(
                token=os.getenv("GITHUB_TOKEN"),
                api_base_url=os.getenv("GITHUB_API_URL", "https://api.github.com"),
                timeout_seconds=int(os.getenv("GITHUB_TIMEOUT", "30")),
                max_concurrent_requests=int(os.getenv("GITHUB_MAX_CONCURRENCY", "8")),
            ),
            acl=AclConfig(
                directory=os.getenv("ACL_DIRECTORY", "acls"),
                ref=os.getenv("ACL_REF", "master"),
                override_token=os.getenv("ACL_OVERRIDE_TOKEN", "ACLOVERRIDE"),
                silent_override_token=os.getenv("ACL_SILENT_OVERRIDE_TOKEN", "ACL_OVERRIDE_HASH"),
                sync_teams=_env_bool("ACL_SYNC_TEAMS", "true"),
                request_reviews=_env_bool("ACL_REQUEST_REVIEWS", "true"),
            ),
            server=ServerConfig(
                host=os.getenv("SERVER_HOST", "0.0.0.0"),
                port=int(os.getenv("SERVER_PORT", "8000")),
                webhook_secret=os.getenv("WEBHOOK_SECRET"),
                debounce_seconds=float(os.getenv("DEBOUNCE_SECONDS", "0.1")),
            ),
            logging=LoggingConfig(
                level=os.getenv("LOG_LEVEL", "INFO"),
                format=os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
                file_path=os.getenv("LOG_FILE"),
                max_file_size=int(os.getenv("LOG_MAX_SIZE", str(10 * 1024 * 1024))),
                backup_count=int(os.getenv("LOG_BACKUP_COUNT", "5")),
            ),
            debug=_env_bool("DEBUG", "false"),
        )

    @classmethod
    def from_yaml(cls, config_path: str) -> "AppConfig":
        """YAML 파일에서 설정 로드"""
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        return cls(
            github=GitHubConfig(**config_data.get('github', {})),
            acl=AclConfig(**config_data.get('acl', {})),
            server=ServerConfig(**config_data.get('server', {})),
            logging=LoggingConfig(**config_data.get('logging', {})),
            debug=config_data.get('debug', False),
        )

    def validate(self, require_token: bool = True) -> None:
        """설정 유효성 검사"""
        errors = []

        # GitHub 토큰 필수 확인
        if require_token and not self.github.token:
            errors.append("GitHub token is required")

        if self.github.max_concurrent_requests <= 0:
            errors.append("Max concurrent requests must be positive")

        if self.github.timeout_seconds <= 0:
            errors.append("Timeout must be positive")

        if not self.acl.directory.strip('/'):
            errors.append("ACL directory cannot be empty")

        if not self.acl.override_token.strip():
            errors.append("Override token cannot be empty")

        if self.acl.silent_override_token and self.acl.silent_override_token == self.acl.override_token:
            errors.append("Silent override token must differ from the override token")

        if self.server.debounce_seconds < 0:
            errors.append("Debounce delay must be non-negative")

        # 로그 레벨 검증
        valid_log_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if self.logging.level.upper() not in valid_log_levels:
            errors.append(f"Invalid log level: {self.logging.level}")

        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")

    def to_dict(self) -> Dict[str, Any]:
        """설정을 딕셔너리로 변환"""
        return {
            'github': {
                'api_base_url': self.github.api_base_url,
                'timeout_seconds': self.github.timeout_seconds,
                'max_concurrent_requests': self.github.max_concurrent_requests,
                # 보안상 토큰은 제외
            },
            'acl': {
                'directory': self.acl.directory,
                'ref': self.acl.ref,
                'override_token': self.acl.override_token,
                'silent_override_token': self.acl.silent_override_token,
                'sync_teams': self.acl.sync_teams,
                'request_reviews': self.acl.request_reviews,
            },
            'server': {
                'host': self.server.host,
                'port': self.server.port,
                'debounce_seconds': self.server.debounce_seconds,
                # 보안상 시크릿은 제외
            },
            'logging': {
                'level': self.logging.level,
                'format': self.logging.format,
                'file_path': self.logging.file_path,
                'max_file_size': self.logging.max_file_size,
                'backup_count': self.logging.backup_count,
            },
            'debug': self.debug,
        }


class ConfigManager:
    """설정 관리자"""

    def __init__(self, config: Optional[AppConfig] = None):
        self._config = config or AppConfig.from_env()
        self._config.validate()
        self._setup_logging()

    @property
    def config(self) -> AppConfig:
        """현재 설정 반환"""
        return self._config

    def update_config(self, **kwargs) -> None:
        """설정 업데이트"""
        config_dict = self._config.to_dict()
        # to_dict에서 제외된 비밀 값 유지
        config_dict['github']['token'] = self._config.github.token
        config_dict['server']['webhook_secret'] = self._config.server.webhook_secret

        for key, value in kwargs.items():
            if '.' in key:
                # 중첩된 설정 (예: 'acl.ref')
                section, name = key.split('.', 1)
                if section in config_dict:
                    config_dict[section][name] = value
            else:
                # 최상위 설정
                config_dict[key] = value

        self._config = AppConfig(
            github=GitHubConfig(**config_dict['github']),
            acl=AclConfig(**config_dict['acl']),
            server=ServerConfig(**config_dict['server']),
            logging=LoggingConfig(**config_dict['logging']),
            debug=config_dict['debug'],
        )

        self._config.validate()
        self._setup_logging()

    def _setup_logging(self) -> None:
        """로깅 설정"""
        logging.basicConfig(
            level=getattr(logging, self._config.logging.level.upper()),
            format=self._config.logging.format,
        )

        # 파일 로깅이 설정된 경우 로테이션 설정
        if self._config.logging.file_path:
            from logging.handlers import RotatingFileHandler

            handler = RotatingFileHandler(
                self._config.logging.file_path,
                maxBytes=self._config.logging.max_file_size,
                backupCount=self._config.logging.backup_count,
            )
            handler.setFormatter(logging.Formatter(self._config.logging.format))

            # 루트 로거에 핸들러 추가
            root_logger = logging.getLogger()
            root_logger.addHandler(handler)


# 전역 설정 관리자 인스턴스 (최초 사용 시 생성)
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> AppConfig:
    """현재 설정 반환"""
    return get_config_manager().config


def update_config(**kwargs) -> None:
    """설정 업데이트"""
    get_config_manager().update_config(**kwargs)
