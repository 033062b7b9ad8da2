"""HTML pages served by the view route: the one-time viewer and the expired page."""

import html
import json
from string import Template
from urllib.parse import quote

from fastapi.responses import HTMLResponse

VIDEO_EXTENSIONS = (".mp4", ".webm", ".mov", ".ogg", ".ogv", ".m4v")

# Shared links must not be cached by browsers or proxies, nor leak via Referer.
NO_STORE_HEADERS = {
    "Cache-Control": "no-store, max-age=0",
    "Referrer-Policy": "no-referrer",
    "X-Robots-Tag": "noindex, nofollow",
}

_STYLE = """
  body {
    margin:0;
    background:#000;
    color:#fff;
    font-family:Arial, sans-serif;
    display:flex;
    align-items:center;
    justify-content:center;
    height:100vh;
    overflow:hidden;
  }
  .container { position:relative; max-width:90%; width:400px; }
  .media { width:100%; border-radius:10px; display:block; }
  .countdown {
    position:absolute;
    top:10px;
    right:10px;
    background:rgba(0,0,0,0.6);
    padding:8px 12px;
    border-radius:8px;
    font-size:18px;
    font-weight:bold;
    color:#ff4d4d;
  }
  .notice { color:#ff4d4d; text-align:center; font-size:20px; }
  .notice p { color:#ccc; font-size:16px; }
"""

_VIEWER = Template("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Secure View</title>
<style>$style</style>
</head>
<body>
  <div class="container">
    $media_tag
    <div class="countdown" id="count">$seconds</div>
  </div>
<script>
  const media = document.getElementById("media");
  const countEl = document.getElementById("count");
  let time = $seconds;
  let started = false;

  // The countdown only starts once the media has fully loaded.
  function startCountdown() {
    if (started) return;
    started = true;
    const timer = setInterval(() => {
      time--;
      countEl.innerText = time;
      if (time <= 0) {
        clearInterval(timer);
        fetch($expire_url, { method: "POST" }).finally(() => {
          document.body.innerHTML = $expired_markup;
        });
      }
    }, 1000);
  }

  media.addEventListener("$load_event", startCountdown);
  if (media.complete || media.readyState >= 2) startCountdown();
</script>
</body>
</html>
""")

_NOTICE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>$title</title>
<style>$style</style>
</head>
<body>
  <div class="notice">
    <h2>$heading</h2>
    <p>$message</p>
  </div>
</body>
</html>
""")

_EXPIRED_HEADING = "&#10060; Link Expired"
_EXPIRED_MESSAGE = "This media was designed to be viewed only once."


def is_video(media_ref: str) -> bool:
    path = media_ref.split("?", 1)[0].lower()
    return path.endswith(VIDEO_EXTENSIONS)


def _media_tag(media_ref: str) -> tuple[str, str]:
    """Return (markup, load event name) for the media element."""
    src = html.escape(media_ref, quote=True)
    if is_video(media_ref):
        return (
            f'<video id="media" class="media" src="{src}" autoplay muted playsinline '
            f'controlsList="nodownload"></video>',
            "loadeddata",
        )
    return f'<img id="media" class="media" src="{src}" alt="" draggable="false" />', "load"


def _js_string(value: str) -> str:
    """JSON-encode for a <script> block without allowing the tag to be closed."""
    return json.dumps(value).replace("</", "<\\/")


def viewer_page(token: str, media_ref: str, countdown_seconds: int) -> HTMLResponse:
    media_tag, load_event = _media_tag(media_ref)
    body = _VIEWER.substitute(
        style=_STYLE,
        media_tag=media_tag,
        load_event=load_event,
        seconds=int(countdown_seconds),
        expire_url=_js_string(f"/expire/{quote(token, safe='')}"),
        expired_markup=_js_string(
            f'<div class="notice"><h2>{_EXPIRED_HEADING}</h2><p>{_EXPIRED_MESSAGE}</p></div>'
        ),
    )
    return HTMLResponse(content=body, headers=NO_STORE_HEADERS)


def expired_page() -> HTMLResponse:
    """Single page for unknown, consumed and TTL-expired links alike."""
    body = _NOTICE.substitute(
        style=_STYLE, title="Link Expired", heading=_EXPIRED_HEADING, message=_EXPIRED_MESSAGE
    )
    return HTMLResponse(content=body, status_code=404, headers=NO_STORE_HEADERS)


def unavailable_page() -> HTMLResponse:
    body = _NOTICE.substitute(
        style=_STYLE,
        title="Try Again",
        heading="Temporarily unavailable",
        message="Please try this link again in a moment.",
    )
    return HTMLResponse(content=body, status_code=503, headers=NO_STORE_HEADERS)
