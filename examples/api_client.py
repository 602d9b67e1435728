import os

from vcon import Dialog, Party, VCon, VConApiClient

client = VConApiClient(
    base_url=os.getenv("VCON_API_BASE_URL", "http://localhost:8000"),
    api_token=os.getenv("VCON_API_TOKEN"),
)

vcon = VCon.build_new()
vcon.add_party(Party(tel="+15551230001", name="Caller"))
vcon.add_party(Party(tel="+15551230002", name="Agent"))
dialog = Dialog("text", vcon.created_at, [0, 1], originator=0)
dialog.add_inline_data("Hi, is my order on its way?", "chat.txt", "text/plain")
vcon.add_dialog(dialog)

ingress_lists = [name for name in os.getenv("VCON_INGRESS_LISTS", "").split(",") if name]
created = client.create_vcon(vcon, ingress_lists=ingress_lists)
print("created:", created.uuid)

fetched = client.get_vcon(created.uuid)
print("dialog count:", len(fetched.dialog) if fetched else 0)

print("matches for caller:", client.search_vcons(tel="+15551230001"))
client.close()
