"""报告与输入拼装格式测试"""

from scamshield.core.models import Modality
from scamshield.gateway.services.report_format import (
    MODALITY_NOT_PROVIDED,
    TEXT_NOT_PROVIDED,
    FinalReportPayload,
    build_main_agent_input,
    format_final_report,
    format_modality_batch,
)


class TestFinalReport:
    def test_sections_in_order(self, final_report_args):
        report = format_final_report(FinalReportPayload(**final_report_args))

        headers = [
            "1. 综合摘要",
            "2. 多模态关键发现",
            "3. 风险信号清单",
            "4. 初步风险等级与理由",
            "5. 建议的下一步核查动作",
        ]
        positions = [report.index(h) for h in headers]
        assert positions == sorted(positions)
        assert "- 文本：对方自称客服，要求提供验证码" in report
        assert "- 索要验证码\n- 仿冒页面" in report
        assert "- 风险等级：高" in report

    def test_empty_lists_and_unknown_level(self):
        report = format_final_report(
            FinalReportPayload(risk_signals=["  "], risk_level="critical")
        )
        assert "- 未识别到明确风险信号" in report
        assert "- 建议补充更多上下文后复核" in report
        assert "- 风险等级：中" in report


class TestMainAgentInput:
    def test_defaults(self):
        text = build_main_agent_input("  ")
        assert text.startswith(f"【用户文本输入】\n{TEXT_NOT_PROVIDED}")
        assert text.count(MODALITY_NOT_PROVIDED) == 3

    def test_modality_batch(self):
        assert format_modality_batch(Modality.IMAGE, ["a\n", "Error: image 2: boom"]) == (
            "【图像 #1】\na\n\n【图像 #2】\nError: image 2: boom"
        )
        assert format_modality_batch(Modality.AUDIO, []) == "音频分析失败: 未返回结果"
