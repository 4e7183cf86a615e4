"""端到端集成测试（Echo 模式）

提交 -> 入队 -> 多模态分析 -> 主智能体 检索/报告/归档 -> 查询档案
"""

from httpx import AsyncClient


class TestEchoEndToEnd:
    async def test_text_and_image(self, client: AsyncClient, png_b64, wait_for_task):
        resp = await client.post(
            "/api/multimodal/analyze",
            json={"text": "test", "images": [png_b64]},
            headers={"X-User-ID": "u1"},
        )
        assert resp.status_code == 202
        task_id = resp.json()["task_id"]

        task = await wait_for_task(client, task_id, "u1")
        assert task["status"] == "completed"
        assert task["title"] == "Echo 模式生成的报告"
        assert task["report"].startswith("1. 综合摘要\nEcho 模式生成的报告")

        resp = await client.get("/api/multimodal/history", headers={"X-User-ID": "u1"})
        history = resp.json()["history"]
        assert len(history) == 1
        record = history[0]
        assert record["record_id"] == task_id
        assert record["title"] == "Echo 模式生成的报告"
        assert record["payload"]["text"] == "test"
        assert record["payload"]["images"] == [png_b64]
        assert len(record["payload"]["image_insights"]) == 1
        assert record["payload"]["image_insights"][0].startswith("【整体视觉感受（主观特征）】")
        assert record["payload"]["audio_insights"] == []

    async def test_all_modalities_with_bad_item(
        self, client: AsyncClient, png_b64, wait_for_task
    ):
        resp = await client.post(
            "/api/multimodal/analyze",
            json={
                "images": [png_b64, "not@@base64"],
                "audios": ["AAAA"],
                "videos": ["AAAA"],
            },
            headers={"X-User-ID": "u2"},
        )
        task_id = resp.json()["task_id"]

        task = await wait_for_task(client, task_id, "u2")
        assert task["status"] == "completed"

        payload = task["payload"]
        assert len(payload["image_insights"]) == 2
        assert payload["image_insights"][1].startswith("Error: image 2: invalid image base64")
        assert payload["audio_insights"][0].startswith("【音频摘要与场景描述】")
        assert len(payload["video_insights"]) == 1

    async def test_task_list_after_completion(
        self, client: AsyncClient, png_b64, wait_for_task
    ):
        headers = {"X-User-ID": "u3"}
        ids = []
        for text in ["第一个", "第二个"]:
            resp = await client.post(
                "/api/multimodal/analyze", json={"text": text}, headers=headers
            )
            ids.append(resp.json()["task_id"])
        for task_id in ids:
            await wait_for_task(client, task_id, "u3")

        resp = await client.get("/api/multimodal/tasks", headers=headers)
        tasks = resp.json()["tasks"]
        assert {t["task_id"] for t in tasks} == set(ids)
        assert all(t["status"] == "completed" for t in tasks)

    async def test_chat_uses_profile(self, client: AsyncClient):
        resp = await client.put(
            "/api/multimodal/user/age", json={"age": 72}, headers={"X-User-ID": "9"}
        )
        assert resp.status_code == 200

        async with client.stream(
            "POST",
            "/api/chat/stream",
            json={"message": "最近有人让我转账"},
            headers={"X-User-ID": "9"},
        ) as response:
            assert response.status_code == 200
            body = "".join([line async for line in response.aiter_lines()])
        assert "Echo:" in body
        assert "event: done" in body
