"""结构化结果与文本格式化

- 子智能体分析结果（三段式）
- 主智能体最终报告（五段式）
- 主智能体输入拼装与模态批量结果拼接
"""

from pydantic import BaseModel, Field
from scamshield.core.models import Modality, normalize_risk_level

# 模态未提供数据时的占位文本
MODALITY_NOT_PROVIDED = "未提供该模态数据"
TEXT_NOT_PROVIDED = "未提供文本说明"


class AnalysisResult(BaseModel):
    """submit_analysis_result 工具参数"""

    visual_impression: str = Field(default="", description="整体感受（主观特征）")
    key_content: str = Field(default="", description="关键内容提取（客观信息）")
    suspicious_points: list[str] = Field(default_factory=list, description="可疑点清单")


class FinalReportPayload(BaseModel):
    """submit_final_report 工具参数"""

    summary: str = ""
    text_finding: str = ""
    image_finding: str = ""
    video_finding: str = ""
    audio_finding: str = ""
    risk_signals: list[str] = Field(default_factory=list)
    risk_level: str = ""
    risk_reason: str = ""
    next_actions: list[str] = Field(default_factory=list)


def format_analysis_result(result: AnalysisResult, audio: bool = False) -> str:
    """三段式分析结果；音频使用音频专用标题"""
    if audio:
        impression_title = "【音频摘要与场景描述】"
        content_title = "【关键信息提取（客观信息）】"
        empty_point = "- 未发现明显语音异常"
    else:
        impression_title = "【整体视觉感受（主观特征）】"
        content_title = "【关键内容提取（客观信息）】"
        empty_point = "- 未发现明显视觉异常"

    lines = [
        impression_title,
        result.visual_impression,
        "",
        content_title,
        result.key_content,
        "",
        "【可疑点清单（仅列出，不判断）】",
    ]
    if result.suspicious_points:
        lines.extend(f"{i}. {point}" for i, point in enumerate(result.suspicious_points, 1))
    else:
        lines.append(empty_point)
    return "\n".join(lines) + "\n"


def _bullets(items: list[str], empty: str) -> list[str]:
    cleaned = [item.strip() for item in items if item.strip()]
    if not cleaned:
        return [empty]
    return [f"- {item}" for item in cleaned]


def format_final_report(payload: FinalReportPayload) -> str:
    """五段式最终报告"""
    risk_level = normalize_risk_level(payload.risk_level)
    lines = [
        "1. 综合摘要",
        payload.summary.strip(),
        "",
        "2. 多模态关键发现",
        f"- 文本：{payload.text_finding.strip()}",
        f"- 图像：{payload.image_finding.strip()}",
        f"- 视频：{payload.video_finding.strip()}",
        f"- 音频：{payload.audio_finding.strip()}",
        "",
        "3. 风险信号清单",
        *_bullets(payload.risk_signals, "- 未识别到明确风险信号"),
        "",
        "4. 初步风险等级与理由",
        f"- 风险等级：{risk_level}",
        f"- 理由：{payload.risk_reason.strip()}",
        "",
        "5. 建议的下一步核查动作",
        *_bullets(payload.next_actions, "- 建议补充更多上下文后复核"),
    ]
    return "\n".join(lines).strip()


def format_modality_batch(modality: Modality, results: list[str]) -> str:
    """将同一模态的多条结果拼接为 【图像 #1】... 形式"""
    if not results:
        return f"{modality.label}分析失败: 未返回结果"
    blocks = [
        f"【{modality.label} #{i}】\n{result.strip()}"
        for i, result in enumerate(results, 1)
    ]
    return "\n\n".join(blocks).strip()


def build_main_agent_input(
    text: str,
    image_summary: str = MODALITY_NOT_PROVIDED,
    video_summary: str = MODALITY_NOT_PROVIDED,
    audio_summary: str = MODALITY_NOT_PROVIDED,
) -> str:
    """拼装主智能体的首条 user 消息"""
    text_input = text.strip() or TEXT_NOT_PROVIDED
    return (
        f"【用户文本输入】\n{text_input}\n\n"
        f"【图像子智能体结果】\n{image_summary}\n\n"
        f"【视频子智能体结果】\n{video_summary}\n\n"
        f"【音频子智能体结果】\n{audio_summary}"
    )
