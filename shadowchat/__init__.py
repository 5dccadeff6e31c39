"""Shadow Chat - 실시간 채팅 클라이언트 게이트웨이"""

__version__ = "1.0.0"
