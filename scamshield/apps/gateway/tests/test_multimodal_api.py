"""HTTP 接口测试 -- Echo 模式完整 app

测试内容：
1. 分析提交（空输入 400、入队 202、队列满 503）
2. 任务列表 / 详情 / 档案
3. 用户年龄更新
4. 聊天 SSE 与会话上下文
"""

import asyncio
import base64
import json
from unittest.mock import AsyncMock

from httpx import AsyncClient
from scamshield.gateway.services.exceptions import QueueFullError

PNG_B64 = base64.b64encode(b"\x89PNG\r\n\x1a\n" + b"\x00" * 16).decode()


async def _wait_completed(client: AsyncClient, task_id: str, headers: dict) -> dict:
    for _ in range(200):
        resp = await client.get(f"/api/multimodal/tasks/{task_id}", headers=headers)
        task = resp.json()["task"]
        if task["status"] in ("completed", "failed"):
            return task
        await asyncio.sleep(0.02)
    raise AssertionError(f"task {task_id} not finished")


class TestAnalyze:
    async def test_empty_input_400(self, client: AsyncClient):
        resp = await client.post(
            "/api/multimodal/analyze", json={"text": "   ", "images": [], "audios": []}
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "EMPTY_INPUT"

    async def test_enqueue_202(self, client: AsyncClient):
        resp = await client.post(
            "/api/multimodal/analyze",
            json={"text": "有人冒充客服", "images": [PNG_B64]},
            headers={"X-User-ID": "u1"},
        )

        assert resp.status_code == 202
        data = resp.json()
        assert data["status"] == "pending"
        assert len(data["task_id"]) == 26
        assert "任务已入队" in data["message"]

    async def test_queue_full_503(self, client: AsyncClient, app):
        scheduler = AsyncMock()
        scheduler.submit = AsyncMock(side_effect=QueueFullError("01TASK"))
        app.state.scheduler = scheduler

        resp = await client.post("/api/multimodal/analyze", json={"text": "x"})

        assert resp.status_code == 503
        error = resp.json()["error"]
        assert error["code"] == "QUEUE_FULL"
        assert error["message"] == "任务入队失败: task queue is full"


class TestTaskQueries:
    async def test_full_flow_visible_in_queries(self, client: AsyncClient):
        headers = {"X-User-ID": "u1"}
        resp = await client.post(
            "/api/multimodal/analyze",
            json={"text": "test", "images": [PNG_B64]},
            headers=headers,
        )
        task_id = resp.json()["task_id"]

        task = await _wait_completed(client, task_id, headers)
        assert task["status"] == "completed"
        assert task["report"].startswith("1. 综合摘要")
        assert task["payload"]["images"] == [PNG_B64]
        assert len(task["payload"]["image_insights"]) == 1

        resp = await client.get("/api/multimodal/tasks", headers=headers)
        tasks = resp.json()["tasks"]
        assert [t["task_id"] for t in tasks] == [task_id]
        assert "payload" not in tasks[0]

        resp = await client.get("/api/multimodal/history", headers=headers)
        history = resp.json()["history"]
        assert history[0]["record_id"] == task_id
        assert history[0]["risk_level"] == "中"

    async def test_users_are_isolated(self, client: AsyncClient):
        resp = await client.post(
            "/api/multimodal/analyze", json={"text": "x"}, headers={"X-User-ID": "u1"}
        )
        task_id = resp.json()["task_id"]

        resp = await client.get(
            f"/api/multimodal/tasks/{task_id}", headers={"X-User-ID": "u2"}
        )
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "TASK_NOT_FOUND"

        resp = await client.get("/api/multimodal/tasks", headers={"X-User-ID": "u2"})
        assert resp.json() == {"user_id": "u2", "tasks": []}

    async def test_default_user(self, client: AsyncClient):
        resp = await client.get("/api/multimodal/history")
        assert resp.json() == {"user_id": "demo-user", "history": []}


class TestUserAge:
    async def test_update_age(self, client: AsyncClient, app):
        resp = await client.put(
            "/api/multimodal/user/age", json={"age": 67}, headers={"X-User-ID": "42"}
        )
        assert resp.status_code == 200
        assert resp.json() == {"user_id": "42", "age": 67, "message": "年龄更新成功"}

        assert await app.state.store_group.profile_store.get_age("42") == 67

    async def test_age_out_of_range(self, client: AsyncClient):
        for age in (0, 151):
            resp = await client.put(
                "/api/multimodal/user/age", json={"age": age}, headers={"X-User-ID": "42"}
            )
            assert resp.status_code == 400
            assert resp.json()["error"]["code"] == "INVALID_AGE"

    async def test_non_numeric_user(self, client: AsyncClient):
        resp = await client.put("/api/multimodal/user/age", json={"age": 30})
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "AGE_WRITE_FAILED"


class TestChatStream:
    async def test_empty_message(self, client: AsyncClient):
        resp = await client.post("/api/chat/stream", json={"message": "  "})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "EMPTY_MESSAGE"

    async def test_stream_events(self, client: AsyncClient):
        events: list[tuple[str, dict]] = []
        event_name = ""
        async with client.stream(
            "POST", "/api/chat/stream", json={"message": "你好"}
        ) as response:
            assert response.status_code == 200
            async for line in response.aiter_lines():
                if line.startswith("event:"):
                    event_name = line[len("event:"):].strip()
                elif line.startswith("data:"):
                    events.append((event_name, json.loads(line[len("data:"):].strip())))

        names = [name for name, _ in events]
        assert names[-1] == "done"
        assert set(names[:-1]) == {"content"}
        text = "".join(data["content"] for name, data in events if name == "content")
        assert text == "Echo: 你好"


class TestChatContext:
    async def _chat(self, client: AsyncClient, message: str, headers: dict) -> None:
        async with client.stream(
            "POST", "/api/chat/stream", json={"message": message}, headers=headers
        ) as response:
            assert response.status_code == 200
            async for _ in response.aiter_lines():
                pass

    async def test_context_after_chat(self, client: AsyncClient):
        headers = {"X-User-ID": "u1"}
        resp = await client.get("/api/chat/context", headers=headers)
        assert resp.status_code == 200
        assert resp.json() == {
            "user_id": "u1",
            "has_context": False,
            "ttl_seconds": 0,
            "messages": [],
        }

        await self._chat(client, "你好", headers)

        body = (await client.get("/api/chat/context", headers=headers)).json()
        assert body["has_context"] is True
        assert body["ttl_seconds"] > 0
        assert body["messages"][0] == {"role": "user", "content": "你好"}
        assert body["messages"][-1] == {"role": "assistant", "content": "Echo: 你好"}

        other = (await client.get("/api/chat/context", headers={"X-User-ID": "u2"})).json()
        assert other["has_context"] is False

    async def test_refresh_clears_context(self, client: AsyncClient):
        headers = {"X-User-ID": "u1"}
        await self._chat(client, "第一句", headers)

        resp = await client.post("/api/chat/refresh", headers=headers)
        assert resp.status_code == 200
        assert resp.json() == {"user_id": "u1", "message": "对话上下文已刷新"}

        body = (await client.get("/api/chat/context", headers=headers)).json()
        assert body["has_context"] is False
        assert body["messages"] == []
