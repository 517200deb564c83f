"""
ACL Data Models

경로 기반 소유권 규칙(ACL) 데이터 모델
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class AclKind(str, Enum):
    """ACL 종류"""
    OWNER = "owner"
    RELEASE_OWNER = "release_owner"


@dataclass(frozen=True)
class TeamBinding:
    """ACL과 동기화되는 GitHub 팀"""
    owners: str
    proxy: Optional[str] = None

    def __post_init__(self):
        """데이터 검증"""
        if not self.owners.strip():
            raise ValueError("Team name cannot be empty")
        if self.proxy is not None and not self.proxy.strip():
            raise ValueError("Proxy team name cannot be empty")

    @property
    def request_target(self) -> str:
        """리뷰 요청 대상 팀 (proxy 우선)"""
        return self.proxy or self.owners


@dataclass(frozen=True)
class AclBase:
    """모든 ACL의 공통 속성"""
    name: str
    paths: Tuple[str, ...]
    exclude_paths: Tuple[str, ...] = ()
    description: Optional[str] = None
    block_message: Optional[str] = None
    groups: Tuple[str, ...] = ()
    whitelist: Tuple[str, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    _path_patterns: Tuple[re.Pattern, ...] = field(default=(), init=False, repr=False, compare=False)
    _exclude_patterns: Tuple[re.Pattern, ...] = field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self):
        """데이터 검증 및 패턴 컴파일"""
        if not self.paths:
            raise ValueError(f"ACL {self.name} must list at least one path")
        object.__setattr__(self, 'paths', tuple(self.paths))
        object.__setattr__(self, 'exclude_paths', tuple(self.exclude_paths))
        object.__setattr__(self, 'groups', tuple(self.groups))
        object.__setattr__(self, 'whitelist', tuple(self.whitelist))
        object.__setattr__(self, '_path_patterns', tuple(re.compile(p) for p in self.paths))
        object.__setattr__(self, '_exclude_patterns', tuple(re.compile(p) for p in self.exclude_paths))

    def is_excluded(self, file_path: str) -> bool:
        """제외 경로 해당 여부"""
        return any(p.search(file_path) for p in self._exclude_patterns)

    def applies_to_file(self, file_path: str) -> bool:
        """파일이 이 ACL의 적용 대상인지 확인"""
        if self.is_excluded(file_path):
            return False
        return any(p.search(file_path) for p in self._path_patterns)


@dataclass(frozen=True)
class OwnerAcl(AclBase):
    """owners 목록을 가진 ACL"""
    owners: Tuple[str, ...] = ()
    team: Optional[TeamBinding] = None

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, 'owners', tuple(self.owners))

    @property
    def kind(self) -> AclKind:
        return AclKind.OWNER

    def is_owner(self, login: str) -> bool:
        """대소문자 구분 없이 소유자 여부 확인"""
        return login.lower() in {o.lower() for o in self.owners}


@dataclass(frozen=True)
class ReleaseOwnerAcl(AclBase):
    """release_owners 목록을 가진 ACL"""
    release_owners: Tuple[str, ...] = ()

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, 'release_owners', tuple(self.release_owners))

    @property
    def kind(self) -> AclKind:
        return AclKind.RELEASE_OWNER


Acl = Union[OwnerAcl, ReleaseOwnerAcl]


def owner_acls(acls: Iterable[Acl]) -> List[OwnerAcl]:
    """owner ACL만 반환"""
    return [acl for acl in acls if acl.kind is AclKind.OWNER]


# Pydantic models for ACL file validation
class TeamSpec(BaseModel):
    """ACL 파일의 team 항목 (객체 형식)"""
    owners: str
    proxy: Optional[str] = None


class AclFileSchema(BaseModel):
    """ACL YAML 파일 스키마"""
    model_config = ConfigDict(extra='allow')

    paths: List[str]
    owners: Optional[List[str]] = None
    release_owners: Optional[List[str]] = None
    exclude_paths: List[str] = []
    description: Optional[str] = None
    block_message: Optional[str] = None
    groups: List[str] = []
    whitelist: List[str] = []
    team: Optional[Union[str, TeamSpec]] = None

    @field_validator('paths')
    @classmethod
    def validate_paths(cls, v):
        if not v:
            raise ValueError('paths must contain at least one pattern')
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f'invalid path pattern {pattern!r}: {e}')
        return v

    @field_validator('exclude_paths')
    @classmethod
    def validate_exclude_paths(cls, v):
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f'invalid exclude pattern {pattern!r}: {e}')
        return v

    @field_validator('owners', 'release_owners')
    @classmethod
    def validate_owner_lists(cls, v):
        if v is not None and not v:
            raise ValueError('owner list cannot be empty')
        return v

    @model_validator(mode='after')
    def validate_owner_kind(self):
        if self.owners is not None and self.release_owners is not None:
            raise ValueError("'owners' and 'release_owners' are mutually exclusive")
        if self.owners is None and self.release_owners is None:
            raise ValueError("must contain either a 'release_owners' or 'owners' property")
        return self

    def team_binding(self) -> Optional[TeamBinding]:
        if self.team is None:
            return None
        if isinstance(self.team, str):
            return TeamBinding(owners=self.team)
        return TeamBinding(owners=self.team.owners, proxy=self.team.proxy)
