"""
Baruc Pairing - QR login and logout for the WhatsApp session.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from baruc.deps import BotDep
from baruc.exceptions import BarucException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["pairing"])


QR_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Baruc - Vincular WhatsApp</title></head>
<body>
  <button id="gen">Generar QR</button>
  <button id="clear" style="margin-left:10px;">Borrar sesión</button>
  <p id="status"></p>
  <div id="out"></div>
  <script>
    const status = document.getElementById('status');
    const out = document.getElementById('out');

    document.getElementById('clear').onclick = async () => {
      status.textContent = 'Borrando sesión…';
      const r = await fetch('/api/logout', { method: 'POST' });
      status.textContent = r.ok ? 'Sesión eliminada' : 'Error al borrar';
      out.innerHTML = '';
    };

    document.getElementById('gen').onclick = async () => {
      status.textContent = 'Generando QR…';
      try {
        const r = await fetch('/api/qr');
        const data = await r.json();
        if (!r.ok) throw new Error((data.error && data.error.message) || 'Error al generar QR');
        status.textContent = 'QR generado';
        out.innerHTML = '<img src="https://api.qrserver.com/v1/create-qr-code/?data=' +
          encodeURIComponent(data.qr) + '&size=200x200">';
      } catch (err) {
        status.textContent = 'ERROR: ' + err.message;
      }
    };
  </script>
</body>
</html>
"""


@router.get("/qr")
async def get_qr(bot: BotDep) -> dict:
    """Restart the WhatsApp session and return the pairing QR string."""
    qr = await bot.request_qr()
    if not qr:
        raise BarucException(
            code="QR_TIMEOUT",
            message="No QR code received from the WhatsApp bridge",
            status_code=504,
        )
    logger.info("QR code delivered to client")
    return {"qr": qr}


@router.get("/qr-page", response_class=HTMLResponse, include_in_schema=False)
async def qr_page() -> str:
    return QR_PAGE


@router.post("/logout")
async def logout(bot: BotDep) -> dict:
    await bot.logout()
    return {"status": "logged out"}
