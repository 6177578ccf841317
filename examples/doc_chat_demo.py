"""Minimal demonstration of a streaming chat about one Markdown document."""

import sys

from doc_assistant.api.service import get_default_session, update_settings

if __name__ == "__main__":
    doc_path = sys.argv[1] if len(sys.argv) > 1 else "README.md"
    question = sys.argv[2] if len(sys.argv) > 2 else "Summarise this page in three sentences."
    session = get_default_session(doc_path)
    if len(sys.argv) > 3:
        update_settings(api_key=sys.argv[3])

    print("User:", question)
    print("Agent: ", end="", flush=True)
    for event in session.send_stream(question):
        if event.kind == "delta":
            print(event.delta_text, end="", flush=True)
    print()
    if session.error:
        print(f"[{session.error.category.value}] {session.error.message}")
