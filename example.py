"""
Пример использования сервиса фискальных документов
"""
import json
import sys
from pathlib import Path

import requests


def emit_document(
    request_path: str,
    token: str,
    api_url: str = "http://localhost:8000"
) -> dict:
    """
    Отправить запрос на эмиссию документа

    Args:
        request_path: Путь к JSON с запросом (EmitDocumentRequest)
        token: Bearer токен
        api_url: URL сервиса

    Returns:
        Ответ сервиса
    """
    request_file = Path(request_path)

    if not request_file.exists():
        raise FileNotFoundError(f"Request not found: {request_path}")

    print(f"📄 Reading request: {request_path}")
    with open(request_file, "r", encoding="utf-8") as f:
        payload = json.load(f)

    headers = {"Authorization": f"Bearer {token}"}

    print(f"🔎 Validating at {api_url}/api/v1/fiscal/documents/validate")
    validation = requests.post(
        f"{api_url}/api/v1/fiscal/documents/validate",
        json=payload,
        headers=headers,
        timeout=30
    )
    validation.raise_for_status()
    validation_result = validation.json()

    if not validation_result["valid"]:
        print("❌ Request has errors:")
        for error in validation_result["errors"]:
            print(f"   - {error}")
        return validation_result

    print(f"🚀 Emitting at {api_url}/api/v1/fiscal/documents")
    response = requests.post(
        f"{api_url}/api/v1/fiscal/documents",
        json=payload,
        headers=headers,
        timeout=60
    )

    if response.status_code != 201:
        detail = response.json().get("detail", {})
        print(f"❌ Error: {response.status_code} ({detail.get('kind', 'unknown')})")
        if detail.get("rejection_reason"):
            print(f"   Rejected: {detail['rejection_reason']}")
        if detail.get("message"):
            print(f"   {detail['message']}")
        if detail.get("retryable"):
            print("   Safe to resubmit.")
        return detail

    result = response.json()
    document = result["document"]

    print(f"\n✅ Authorized!")
    print(f"⏱️  Processing time: {result['processing_time_ms']}ms")
    print(f"🧾 Number: {document['series']}/{document['number']}")
    print(f"👤 Counterparty: {document['counterparty_name']} ({document['counterparty_tax_id']})")

    print("\n📦 Items:")
    for item in document.get("items", []):
        print(f"   - {item['code']} {item['description']}: {item['line_total']}")

    print(f"\n💰 Total: {document['total_amount']}")
    if document.get("tax_withheld"):
        print(f"   Withheld: {document['withheld_amount']}")

    print(f"\n🔗 XML: {document['external_document_ref']}")
    print(f"🔗 PDF: {document['external_render_ref']}")

    return result


def main():
    """Точка входа"""
    if len(sys.argv) < 3:
        print("Usage: python example.py <path_to_request.json> <token> [api_url]")
        print("Example: python example.py nfse.json dev-token")
        sys.exit(1)

    request_path = sys.argv[1]
    token = sys.argv[2]
    api_url = sys.argv[3] if len(sys.argv) > 3 else "http://localhost:8000"

    try:
        result = emit_document(request_path, token, api_url)

        if result:
            output_file = Path(request_path).stem + "_result.json"
            with open(output_file, "w", encoding="utf-8") as f:
                json.dump(result, f, indent=2, ensure_ascii=False)
            print(f"\n💾 Full result saved to: {output_file}")

    except FileNotFoundError as e:
        print(f"❌ Error: {e}")
        sys.exit(1)

    except requests.exceptions.ConnectionError:
        print(f"❌ Error: Cannot connect to fiscal service at {api_url}")
        print("Make sure the service is running: python run.py")
        sys.exit(1)

    except Exception as e:
        print(f"❌ Unexpected error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
