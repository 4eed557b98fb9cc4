"""HTTP Range 헤더 해석 (비디오 스트리밍용)."""

from core.exceptions import RangeNotSatisfiable


def parse_range_header(header: str, file_size: int) -> tuple[int, int]:
    """"bytes=start-end" 를 (start, end) 포함 구간으로 바꾼다.

    지원 형식: bytes=0-499, bytes=500-, bytes=-500 (마지막 500바이트).
    여러 구간 요청이나 파일 크기를 벗어난 범위는 416으로 거절한다.
    """
    unsatisfiable = RangeNotSatisfiable(headers={"Content-Range": f"bytes */{file_size}"})

    unit, _, range_spec = header.strip().partition("=")
    if unit.strip().lower() != "bytes" or not range_spec or "," in range_spec:
        raise unsatisfiable

    start_raw, sep, end_raw = range_spec.strip().partition("-")
    if not sep:
        raise unsatisfiable

    try:
        if start_raw == "":
            # suffix range
            length = int(end_raw)
            if length <= 0:
                raise unsatisfiable
            start = max(file_size - length, 0)
            end = file_size - 1
        else:
            start = int(start_raw)
            end = int(end_raw) if end_raw else file_size - 1
    except ValueError:
        raise unsatisfiable from None

    end = min(end, file_size - 1)
    if start < 0 or start >= file_size or end < start:
        raise unsatisfiable
    return start, end
