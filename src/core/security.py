import hmac

from core.exceptions import AdminKeyNotConfigured, InvalidAdminKey

# --- 관리자 키 ---
# 사용자 계정/토큰은 없고, 서버 설정의 ADMIN_SECRET_KEY 하나와 비교한다.
# 문자열 비교는 hmac.compare_digest로 (길이/내용에 따라 시간이 달라지지 않음)


def verify_admin_key(provided: str | None, expected: str | None) -> None:
    """관리자 키를 검증한다.

    - 서버에 키가 없으면 AdminKeyNotConfigured (500)
    - 키가 없거나 다르면 InvalidAdminKey (403)
    """
    if not expected:
        raise AdminKeyNotConfigured
    if not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise InvalidAdminKey
