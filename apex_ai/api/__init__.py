"""チャットWebサービス（FastAPI）"""
