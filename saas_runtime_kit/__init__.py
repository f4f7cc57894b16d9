"""
saas_runtime_kit
----------------

SaaS Runtime 워크로드용 GCP 프로젝트 초기 구성 CLI 패키지.
프로젝트 생성, API 활성화, 서비스 계정 준비 및 IAM 역할 부여,
Artifact Registry 생성을 멱등하게 한 번에 수행하는 것을 목표로 한다.
"""

__all__ = [
    "config",
    "orchestrator",
]
