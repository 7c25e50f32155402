# /botengine/config/strings.py

# This file contains all user-facing strings emitted by the bot engine itself.
# Tenant-authored text (menus, flow messages) lives in the database.

INVALID_OPTION_NOTICE = "❌ Opção inválida. Digite o *número* da opção desejada."

MENU_DEFAULT_HEADER = "Escolha uma opção:"
MENU_SEPARATOR = "────────────"
MENU_BACK_HINT = "0 - ⬅️ Voltar"
MENU_HOME_HINT = "# - Menu Principal"

LINK_TEMPLATE = "🔗 Acesse: {url}"

SESSION_ENDED_MESSAGE = """👋 *Atendimento encerrado*

Obrigado pelo contato!"""

HUMAN_TAKEOVER_MESSAGE = """👤 *Aguardando atendente*

Você está na fila de atendimento.
Um atendente irá responder em breve."""
