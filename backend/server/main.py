import uvicorn
from fastapi import FastAPI

from config.settings import UVICORN_CONFIG
from server.api.rest.dependencies import shutdown_dependencies
from server.api_router import api_router

# 初始化 FastAPI 应用
app = FastAPI(title="Movie Tracker", description="个人/共享片单与电影推荐后端API")

# 添加路由
app.include_router(api_router)


@app.on_event("shutdown")
async def shutdown_event():
    """应用关闭时清理资源（数据库连接池、TMDB 会话）"""
    await shutdown_dependencies()


# 启动服务器
if __name__ == "__main__":
    uvicorn.run("server.main:app", **UVICORN_CONFIG)
