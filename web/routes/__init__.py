"""
API 라우트 패키지

각 기능별 라우터 모듈:
- health: 헬스 체크, 스키마 세대 점검
- transactions: 거래 그룹 (생성/수정/확정/잠금 해제/취소, 자금 출처)
- accounts: 계정과목
"""
