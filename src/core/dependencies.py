from fastapi import Depends, Header, Request

from core.container import AppContainer
from core.security import verify_admin_key


def get_container(request: Request) -> AppContainer:
    """lifespan에서 만든 프로세스 단위 컨테이너를 꺼낸다."""
    return request.app.state.container


def require_admin_key(
    x_admin_key: str | None = Header(default=None),
    container: AppContainer = Depends(get_container),
) -> None:
    """X-Admin-Key 헤더로 관리자 권한을 확인한다.

    본문에 adminKey를 받는 엔드포인트(toggle-feature)는 라우터에서 직접
    verify_admin_key를 호출한다.
    """
    verify_admin_key(x_admin_key, container.settings.ADMIN_SECRET_KEY)
