"""
원장 API 서버 실행

    python -m web

호스트/포트는 config/settings.yaml 의 web 섹션을 따른다.
"""

import uvicorn

from core.config.loader import get_settings


def main() -> None:
    web_settings = get_settings().web
    uvicorn.run("web.app:app", host=web_settings.host, port=web_settings.port)


if __name__ == "__main__":
    main()
