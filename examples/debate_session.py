#!/usr/bin/env python3
"""
Generate a debate topic, store it, and replay its script.

Start the tool server first (it serves the event stream at /sse), then:

    python examples/debate_session.py [http://localhost:8000]
"""
import sys
import time

from debatelib import ToolServerClient, MCPError, create_repository, load_settings

def main():
    settings = load_settings(mcp_url=sys.argv[1] if len(sys.argv) > 1 else None)
    client = ToolServerClient(settings.mcp_url, call_timeout=settings.call_timeout)

    # One session, several calls: list the tools, then generate a topic
    with client.session():
        print(f"Connected to {client.server_info.get('name', 'tool server')}")
        for tool in client.call("tools/list").get("tools", []):
            print(f"  - {tool['name']}")

    try:
        draft = client.fetch_topic()
    except MCPError as e:
        print(f"Could not generate a topic: {e}")
        return 1

    with create_repository(settings) as repo:
        topic = repo.insert(draft) or draft

    print(f"\n{topic.title}\n{topic.description}\n\n{topic.code}\n")
    for message in topic.script:
        print(f"[{message.speaker.value}] {message.text}")
        time.sleep(0.5)
    return 0

if __name__ == "__main__":
    sys.exit(main())
