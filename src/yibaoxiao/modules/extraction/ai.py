from __future__ import annotations

import json
import re
from typing import Any

import httpx

from yibaoxiao.core.config import settings
from yibaoxiao.core.logging import get_logger, log_event

logger = get_logger(__name__)

_COMMON_RULES = (
    "注意：\n"
    "- 所有金额必须是数字，不要包含货币符号和千分位\n"
    "- 日期格式必须是 YYYY-MM-DD\n"
    "- 如果无法识别某字段，返回空字符串或0\n"
    "- 只返回 JSON，不要返回任何解释文字\n"
)

_PROMPTS: dict[str, str] = {
    "invoice": (
        "请仔细分析这些电子发票/收据图片，完整提取以下信息并返回JSON格式：\n"
        "{\n"
        '  "invoiceCode": "发票代码",\n'
        '  "invoiceNumber": "发票号码",\n'
        '  "invoiceDate": "开票日期",\n'
        '  "sellerName": "销售方名称",\n'
        '  "projectName": "最主要的货物或服务名称（如：餐饮服务、住宿服务）",\n'
        '  "totalAmount": 价税合计金额,\n'
        '  "taxAmount": 税额,\n'
        '  "amountWithoutTax": 不含税金额,\n'
        '  "items": [{"name": "名称", "quantity": 数量, "unitPrice": 单价, "amount": 金额}],\n'
        '  "remarks": "备注"\n'
        "}\n"
    ),
    "approval": (
        "请仔细分析这些钉钉/飞书审批单图片，完整提取以下信息并返回JSON格式：\n"
        "{\n"
        '  "approvalNumber": "审批单号/流程编号（如：DD-2024-XXXXXX）",\n'
        '  "approvalTitle": "审批标题",\n'
        '  "applicant": "申请人姓名",\n'
        '  "department": "申请人部门",\n'
        '  "applyDate": "申请日期",\n'
        '  "eventSummary": "事项简要描述（不超过15字）",\n'
        '  "eventDetail": "事项详细说明",\n'
        '  "loanAmount": 借款金额,\n'
        '  "expenseAmount": 报销金额,\n'
        '  "budgetProject": "预算项目名称",\n'
        '  "budgetCode": "预算编码"\n'
        "}\n"
    ),
    "ticket": (
        "请仔细分析这些火车票/机票图片，提取每一张票并返回JSON格式：\n"
        "{\n"
        '  "tickets": [{\n'
        '    "ticketType": "火车票/飞机票",\n'
        '    "departure": "出发城市",\n'
        '    "destination": "到达城市",\n'
        '    "departureDate": "出发日期",\n'
        '    "passengerName": "乘客姓名",\n'
        '    "trainNumber": "车次/航班号",\n'
        '    "amount": 票价\n'
        "  }],\n"
        '  "tripReason": "出差事由（如有）"\n'
        "}\n"
        "- departure 和 destination 精简为城市名，如“北京”、“上海”\n"
    ),
    "hotel": (
        "请仔细分析这些住宿/酒店发票图片，提取每一张发票并返回JSON格式：\n"
        "{\n"
        '  "hotels": [{\n'
        '    "hotelName": "酒店名称",\n'
        '    "city": "所在城市",\n'
        '    "location": "详细地址",\n'
        '    "checkInDate": "入住日期",\n'
        '    "checkOutDate": "离店日期",\n'
        '    "days": 住宿天数,\n'
        '    "amount": 总金额\n'
        "  }]\n"
        "}\n"
    ),
    "taxi": (
        "请仔细分析这些打车发票/行程单图片，提取每一条乘车记录并返回JSON格式：\n"
        "{\n"
        '  "details": [{\n'
        '    "date": "乘车日期",\n'
        '    "startPoint": "上车地点（精简，如：酒店、机场）",\n'
        '    "endPoint": "下车地点（精简）",\n'
        '    "route": "起点-终点",\n'
        '    "amount": 金额,\n'
        '    "platform": "平台名称"\n'
        "  }]\n"
        "}\n"
    ),
}


class RecognitionError(Exception):
    """The AI service could not produce a result for this request."""

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class RecognitionNotConfigured(RecognitionError):
    def __init__(self) -> None:
        super().__init__("AI recognition is not configured", retryable=False)


def recognition_available() -> bool:
    return bool(settings.ai_api_key)


def call_recognition_model(images: list[str], document_type: str) -> Any:
    """
    Send the document images to the configured vision model and return the parsed
    JSON payload (a dict or a list, exactly as the model produced it).

    Raises RecognitionError on transport errors, non-2xx responses, refusals and
    responses that contain no JSON at all.
    """
    if not settings.ai_api_key:
        raise RecognitionNotConfigured()
    prompt = _PROMPTS.get(document_type)
    if prompt is None:
        raise RecognitionError(f"Unsupported document type: {document_type}", retryable=False)

    content: list[dict[str, Any]] = [{"type": "text", "text": prompt + _COMMON_RULES}]
    for image in images[: max(1, int(settings.ai_max_images or 1))]:
        content.append({"type": "image_url", "image_url": {"url": _as_data_url(image)}})

    payload = {
        "model": settings.ai_model,
        "temperature": 0,
        "messages": [
            {
                "role": "system",
                "content": (
                    "You extract fields from Chinese reimbursement documents.\n"
                    "Only use information explicitly present in the images. Never guess.\n"
                    "Return JSON only."
                ),
            },
            {"role": "user", "content": content},
        ],
    }
    headers = {
        "Authorization": f"Bearer {settings.ai_api_key}",
        "Content-Type": "application/json",
    }

    url = settings.ai_base_url.rstrip("/") + "/chat/completions"
    try:
        resp = httpx.post(
            url,
            headers=headers,
            json=payload,
            timeout=float(settings.ai_timeout_seconds or 60.0),
            follow_redirects=True,
        )
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        status_code = e.response.status_code if e.response is not None else None
        log_event(
            logger,
            "recognition.http_error",
            document_type=document_type,
            status_code=status_code,
        )
        raise RecognitionError(
            f"AI service returned HTTP {status_code}",
            retryable=status_code is None or status_code >= 500 or status_code == 429,
        ) from e
    except httpx.HTTPError as e:
        log_event(
            logger, "recognition.transport_error", document_type=document_type, error=str(e)
        )
        raise RecognitionError("AI service is unreachable") from e

    try:
        raw = resp.json()
        msg = raw["choices"][0]["message"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise RecognitionError("AI service returned an unexpected response") from e

    if isinstance(msg, dict) and msg.get("refusal"):
        raise RecognitionError("AI service refused to read the document", retryable=False)
    text = msg.get("content") if isinstance(msg, dict) else None
    if not isinstance(text, str) or not text.strip():
        raise RecognitionError("AI service returned an empty response")

    parsed = parse_json_payload(text)
    if parsed is None:
        raise RecognitionError("AI service response did not contain JSON")
    return parsed


def parse_json_payload(content: str) -> Any:
    c = (content or "").strip()
    if not c:
        return None
    c = re.sub(r"^```(?:json)?\s*|\s*```$", "", c)
    try:
        return json.loads(c)
    except ValueError:
        pass

    # Fallback: the first {...} or [...] block, whichever opens first.
    starts = [i for i in (c.find("{"), c.find("[")) if i >= 0]
    if not starts:
        return None
    start = min(starts)
    closing = "}" if c[start] == "{" else "]"
    end = c.rfind(closing)
    if end <= start:
        return None
    try:
        return json.loads(c[start : end + 1])
    except ValueError:
        return None


def _as_data_url(image: str) -> str:
    s = (image or "").strip()
    if s.startswith("data:"):
        return s
    return f"data:image/jpeg;base64,{s}"
