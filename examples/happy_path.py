from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

from vcon import Dialog, Encoding, Party, VCon


def main() -> None:
    vcon = VCon.build_new()
    vcon.subject = "Account help"
    vcon.add_party(Party(tel="+1234567890", name="John Doe", role="customer"))
    vcon.add_party(Party(tel="+0987654321", name="Jane Smith", role="agent"))

    start = datetime.now(timezone.utc)
    question = Dialog("text", start, [0, 1], originator=0)
    question.add_inline_data("Hello, I need help with my account.", "chat.txt", "text/plain")
    vcon.add_dialog(question)

    answer = Dialog("text", start + timedelta(seconds=1), [0, 1], originator=1)
    answer.add_inline_data("Hello John, how can I assist you today?", "chat.txt", "text/plain")
    vcon.add_dialog(answer)

    recording = Dialog("recording", start, [0, 1], duration=120)
    recording.add_external_data("https://media.example.com/call.wav", "call.wav", "audio/wav")
    vcon.add_dialog(recording)

    vcon.add_attachment("application/pdf", "JVBERi0xLjQK", Encoding.BASE64)
    vcon.add_analysis({"type": "summary", "dialog": [0, 1], "vendor": "example", "body": "Customer asked for account help."})
    vcon.add_tag("category", "support")

    private_pem, public_pem = VCon.generate_key_pair()
    vcon.sign(private_pem)

    loaded = VCon.build_from_json(vcon.to_json())
    print(json.dumps({"uuid": loaded.uuid, "verified": loaded.verify(public_pem)}, indent=2, sort_keys=True))
    print(loaded.to_json(indent=2))


if __name__ == "__main__":
    main()
