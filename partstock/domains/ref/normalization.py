# partstock/domains/ref/normalization.py

"""
사용자가 입력한 품번(article) 문자열을 검색 키로 정규화하는 모듈입니다.

정규화 단계 (순서 고정):
1. 대문자 변환
2. 구분자 제거 (공백, 하이픈, 밑줄, 마침표, 슬래시)
3. 라틴 문자와 모양이 같은 키릴 문자를 라틴 문자로 치환

결과는 멱등(idempotent)입니다: normalize_article(normalize_article(x)) == normalize_article(x)
"""

import re
from typing import Dict, Optional

DELIMITER_PATTERN = re.compile(r"[\s\-_./]")

# 키릴 -> 라틴 동형 문자 표. 값이 서로 겹치지 않는 키(Ё 제외)만 유지합니다.
CYRILLIC_TO_LATIN: Dict[str, str] = {
    "А": "A",
    "В": "B",
    "Е": "E",
    "К": "K",
    "М": "M",
    "Н": "H",
    "О": "O",
    "Р": "P",
    "С": "C",
    "Т": "T",
    "У": "Y",
    "Х": "X",
    "Ё": "E",
}

_HOMOGLYPH_TABLE = str.maketrans(CYRILLIC_TO_LATIN)

# SQL 쪽 정규화(TRANSLATE)에 그대로 전달되는 문자열 쌍
CYRILLIC_LETTERS = "".join(CYRILLIC_TO_LATIN.keys())
LATIN_LETTERS = "".join(CYRILLIC_TO_LATIN.values())


def normalize_article(raw: Optional[str]) -> str:
    """품번 문자열을 정규화된 검색 키로 변환합니다. 실패하지 않습니다."""
    if not raw:
        return ""
    key = raw.upper()
    key = DELIMITER_PATTERN.sub("", key)
    return key.translate(_HOMOGLYPH_TABLE)
