"""Argentine-Spanish reply templates for the chat bots.

Placeholders use ``{key}`` and are filled by ``cashe.utils.formatting.interpolate``.
"""

from typing import Dict, List

RESPONSES: Dict[str, str] = {
    # Help
    "HELP": """🤖 *¡Hola! Soy tu asistente de Cashé*

Podés decirme cosas como:

💸 *Gastos*
"gasté 500 en comida con galicia"
"pagué 1500 de luz"
"compré nafta 8000 con mp"
"compré zapatillas 90k en 3 cuotas con visa"

💰 *Ingresos*
"cobré 50000 en santander"
"me pagaron el sueldo"
"recibí 10000 de freelance"

🔄 *Transferencias*
"transferí 10000 de galicia a mp"
"pasé 5000 de brubank a efectivo"

💳 *Tarjetas*
"pagar visa desde galicia"
"agregar sellos de 1500 a visa"
"resumen visa"

📊 *Consultas*
"saldo mercadopago"
"cuánto gasté en comida este mes"
"últimos 5 movimientos"
"resumen del mes"
"cómo van mis presupuestos"

¡Escribime en lenguaje natural! 😊""",

    "HELP_SHORT": """💡 *Tip:* Escribime en lenguaje natural
Ej: "gasté 500 en comida con galicia"

Para ver todos los comandos, escribí "ayuda\"""",

    # Understanding
    "NO_ENTENDI": """🤔 No entendí bien. Probá decirme algo como:
• "gasté 500 en comida"
• "saldo galicia"
• "resumen del mes"

Escribí "ayuda" para ver todo lo que puedo hacer.""",

    # Linking
    "NO_VINCULADO_TELEGRAM": """⚠️ *Tu cuenta de Telegram no está vinculada a Cashé*

Para vincularla:
1. Abrí la app en cashe.ar
2. Andá a ⚙️ Ajustes → 🤖 Integraciones
3. Seleccioná "Vincular Telegram"
4. Seguí las instrucciones

¿Ya tenés cuenta? Vinculá tu Telegram para empezar 🚀""",

    "NO_VINCULADO_WHATSAPP": """⚠️ *Tu número de WhatsApp no está vinculado a Cashé*

Para vincularlo:
1. Abrí la app en cashe.ar
2. Andá a ⚙️ Ajustes → 🤖 Integraciones
3. Seleccioná "Vincular WhatsApp"
4. Seguí las instrucciones

¿Ya tenés cuenta? Vinculá tu WhatsApp para empezar 🚀""",

    # Confirmation
    "CONFIRMAR_PREGUNTA": "¿Está correcto?",
    "CONFIRMAR_OPCIONES": "✅ *Sí* | ✏️ *Editar* | ❌ *Cancelar*",
    "CANCELADO": "❌ Cancelado. ¿En qué más te puedo ayudar?",
    "REINICIADO": "❌ Conversación reiniciada. Escribí lo que necesites.",
    "CONFLICTO_ESTADO": "⏳ Estoy procesando otro mensaje tuyo. Probá de nuevo en un segundo.",
    "OPCION_INVALIDA": "🤔 No reconocí esa opción. Respondé con el número o el nombre.",

    # Success
    "GASTO_REGISTRADO": "✅ *¡Gasto registrado!*",
    "INGRESO_REGISTRADO": "✅ *¡Ingreso registrado!*",
    "TRANSFERENCIA_REGISTRADA": "✅ *¡Transferencia registrada!*",
    "CUOTAS_REGISTRADAS": "✅ *¡Compra en cuotas registrada!*",
    "PAGO_TARJETA_REGISTRADO": "✅ *¡Pago de tarjeta registrado!*",
    "SELLOS_REGISTRADOS": "✅ *¡Impuesto de sellos agregado!*",

    # Editing
    "EDITAR_PREGUNTA": "✏️ *¿Qué querés cambiar?*",

    # Selection
    "SELECCIONAR_CUENTA": "🏦 *Elegí la cuenta:*",
    "SELECCIONAR_CATEGORIA": "📁 *Elegí la categoría:*",
    "SELECCIONAR_CUENTA_ORIGEN": "🏦 *¿De qué cuenta transferís?*",
    "SELECCIONAR_CUENTA_DESTINO": "🏦 *¿A qué cuenta transferís?*",
    "SELECCIONAR_TARJETA": "💳 *¿Qué tarjeta?*",
    "SELECCIONAR_CUENTA_PAGO": "🏦 *¿Desde qué cuenta pagás?*",
    "SELECCIONAR_RESUMEN": "🗓️ *¿Qué resumen?*",
    "SELECCIONAR_PERIODO": "📅 *¿De qué período?*",

    # Menu
    "MENU": "📋 *Menú principal*\n\n¿Qué querés hacer?",
    "MENU_MONTO_GASTO": "💸 *Nuevo gasto*\n\n💰 ¿Cuál es el monto?",
    "MENU_MONTO_INGRESO": "💰 *Nuevo ingreso*\n\n💰 ¿Cuál es el monto?",
    "MENU_MONTO_TRANSFERENCIA": "🔄 *Nueva transferencia*\n\n💰 ¿Cuánto querés transferir?",

    # Disambiguation
    "MULTIPLES_CUENTAS": "🤔 Encontré varias cuentas que coinciden. ¿Cuál querés usar?",
    "MULTIPLES_CATEGORIAS": "🤔 Encontré varias categorías que coinciden. ¿Cuál querés usar?",

    # Missing data
    "FALTA_MONTO": "💰 ¿Cuál es el monto?",
    "FALTA_SELLOS": "🧾 ¿Cuánto es el impuesto de sellos?",

    # Errors
    "ERROR_GENERICO": "❌ Ups, algo salió mal. ¿Podés intentar de nuevo?",
    "ERROR_CUENTA_NO_ENCONTRADA": "❌ No encontré esa cuenta. Revisá el nombre e intentá de nuevo.",
    "ERROR_MONTO_INVALIDO": "❌ El monto no es válido. Usá números (ej: 1500, 50k, 2.5k)",
    "ERROR_FECHA_INVALIDA": "❌ No entendí la fecha. Probá con \"hoy\", \"ayer\", o \"dd/mm\"",
    "ERROR_SIN_CUENTAS": "⚠️ No tenés cuentas creadas. Creá una en la app primero.",
    "ERROR_SIN_CATEGORIAS": "⚠️ No tenés categorías creadas. Creá una en la app primero.",
    "ERROR_MISMA_CUENTA": "❌ La cuenta de origen y destino no pueden ser la misma.",
    "ERROR_SIN_TARJETAS": "⚠️ No tenés tarjetas de crédito cargadas. Creá una en la app primero.",
    "ERROR_RESUMEN_VACIO": "📭 El resumen de {tarjeta} de {resumen} no tiene consumos para pagar.",

    # Queries
    "SALDO_TOTAL": "💰 *Tu balance total:*",
    "SALDO_CUENTA": "💰 *Saldo en {cuenta}:*",
    "SIN_MOVIMIENTOS": "📭 No hay movimientos en este período.",
    "GASTOS_PERIODO": "📊 *Gastos {periodo}:*",
    "GASTOS_CATEGORIA": "📊 *Gastos en {categoria} {periodo}:*",
    "INGRESOS_PERIODO": "📊 *Ingresos {periodo}:*",
    "INGRESOS_CATEGORIA": "📊 *Ingresos en {categoria} {periodo}:*",
    "ULTIMOS_MOVIMIENTOS": "📋 *Últimos {n} movimientos:*",
    "RESUMEN_MES": "📈 *Resumen de {mes}:*",
    "RESUMEN_TARJETA": "💳 *Resumen {tarjeta} - {resumen}:*",
    "RESUMEN_TARJETA_VACIO": "📭 El resumen de {tarjeta} de {resumen} no tiene consumos.",
    "PRESUPUESTOS": "🎯 *Presupuestos de {mes}:*",
    "SIN_PRESUPUESTOS": "📭 No tenés presupuestos activos. Creá uno en la app.",

    # Previews
    "PREVIEW_GASTO": """📝 *Voy a registrar este gasto:*

💰 Monto: {monto}
📁 Categoría: {categoria}
💳 Cuenta: {cuenta}
📅 Fecha: {fecha}
📝 Nota: {nota}""",

    "PREVIEW_GASTO_TARJETA": """📝 *Voy a registrar este gasto:*

💰 Monto: {monto}
📁 Categoría: {categoria}
💳 Tarjeta: {cuenta}
🗓️ Resumen: {resumen}
📝 Nota: {nota}""",

    "PREVIEW_GASTO_CUOTAS": """📝 *Voy a registrar esta compra en cuotas:*

💰 Total: {monto}
📦 Cuotas: {cuotas}x {monto_cuota}
📁 Categoría: {categoria}
💳 Tarjeta: {cuenta}
🗓️ Resumen: {resumen}
📝 Nota: {nota}""",

    "PREVIEW_INGRESO": """📝 *Voy a registrar este ingreso:*

💰 Monto: {monto}
📁 Categoría: {categoria}
🏦 Cuenta: {cuenta}
📅 Fecha: {fecha}
📝 Nota: {nota}""",

    "PREVIEW_TRANSFERENCIA": """📝 *Voy a registrar esta transferencia:*

💰 Monto: {monto}
🏦 De: {cuenta_origen}
🏦 A: {cuenta_destino}
📅 Fecha: {fecha}
📝 Nota: {nota}""",

    "PREVIEW_PAGAR_TARJETA": """📝 *Voy a registrar este pago de tarjeta:*

💳 Tarjeta: {tarjeta}
🗓️ Resumen: {resumen}
💰 Total a pagar: {monto}
🏦 Desde: {cuenta}
📅 Fecha: {fecha}""",

    "PREVIEW_AGREGAR_SELLOS": """📝 *Voy a agregar impuesto de sellos:*

💳 Tarjeta: {tarjeta}
🗓️ Resumen: {resumen}
🧾 Sellos: {monto}
📅 Fecha de cierre: {fecha}""",

    # Results
    "RESULTADO_GASTO": "💸 {monto} en {categoria}\n🏦 {cuenta}",
    "RESULTADO_INGRESO": "💰 +{monto} de {categoria}\n🏦 {cuenta}",
    "RESULTADO_TRANSFERENCIA": "🔄 {monto}\n🏦 {cuenta_origen} → {cuenta_destino}",
    "RESULTADO_CUOTAS": "📦 {cuotas} cuotas de {monto_cuota}\n💳 {cuenta}\n🗓️ Primera cuota: {resumen}",
    "RESULTADO_PAGO_TARJETA": "💳 {monto} a {tarjeta} ({resumen})\n🏦 Desde {cuenta}",
    "RESULTADO_SELLOS": "🧾 {monto} en {tarjeta}\n🗓️ Resumen {resumen}",

    # List items
    "MOVIMIENTO_ITEM_GASTO": "💸 {monto} - {categoria}\n   📅 {fecha} | 🏦 {cuenta}",
    "MOVIMIENTO_ITEM_INGRESO": "💰 +{monto} - {categoria}\n   📅 {fecha} | 🏦 {cuenta}",
    "MOVIMIENTO_ITEM_TRANSFERENCIA": "🔄 {monto}\n   📅 {fecha} | {origen} → {destino}",
}

# Editable fields per write intent family: (key, label, icon)
EDIT_FIELDS: Dict[str, List[Dict[str, str]]] = {
    "REGISTRAR_GASTO": [
        {"key": "amount", "label": "Monto", "icon": "💰"},
        {"key": "category", "label": "Categoría", "icon": "📁"},
        {"key": "account", "label": "Cuenta", "icon": "🏦"},
        {"key": "date", "label": "Fecha", "icon": "📅"},
        {"key": "note", "label": "Nota", "icon": "📝"},
    ],
    "REGISTRAR_INGRESO": [
        {"key": "amount", "label": "Monto", "icon": "💰"},
        {"key": "category", "label": "Categoría", "icon": "📁"},
        {"key": "account", "label": "Cuenta", "icon": "🏦"},
        {"key": "date", "label": "Fecha", "icon": "📅"},
        {"key": "note", "label": "Nota", "icon": "📝"},
    ],
    "REGISTRAR_TRANSFERENCIA": [
        {"key": "amount", "label": "Monto", "icon": "💰"},
        {"key": "from_account", "label": "Cuenta origen", "icon": "🏦"},
        {"key": "to_account", "label": "Cuenta destino", "icon": "🏦"},
        {"key": "date", "label": "Fecha", "icon": "📅"},
        {"key": "note", "label": "Nota", "icon": "📝"},
    ],
    "PAGAR_TARJETA": [
        {"key": "target_card", "label": "Tarjeta", "icon": "💳"},
        {"key": "statement_month", "label": "Resumen", "icon": "🗓️"},
        {"key": "source_account", "label": "Cuenta de pago", "icon": "🏦"},
        {"key": "date", "label": "Fecha", "icon": "📅"},
    ],
    "AGREGAR_SELLOS": [
        {"key": "stamp_tax", "label": "Monto de sellos", "icon": "🧾"},
        {"key": "target_card", "label": "Tarjeta", "icon": "💳"},
        {"key": "statement_month", "label": "Resumen", "icon": "🗓️"},
    ],
}

# Keyword (normalized) → editable field
EDIT_FIELD_KEYWORDS: Dict[str, str] = {
    "monto": "amount",
    "importe": "amount",
    "categoria": "category",
    "cuenta": "account",
    "fecha": "date",
    "dia": "date",
    "nota": "note",
    "descripcion": "note",
    "origen": "from_account",
    "destino": "to_account",
    "tarjeta": "target_card",
    "resumen": "statement_month",
    "pago": "source_account",
    "sellos": "stamp_tax",
}

# Prompt shown when a field is being (re)entered
FIELD_PROMPTS: Dict[str, str] = {
    "amount": "EDITAR_MONTO",
    "category": "EDITAR_CATEGORIA",
    "account": "EDITAR_CUENTA",
    "from_account": "EDITAR_CUENTA_ORIGEN",
    "to_account": "EDITAR_CUENTA_DESTINO",
    "date": "EDITAR_FECHA",
    "note": "EDITAR_NOTA",
    "target_card": "SELECCIONAR_TARJETA",
    "source_account": "SELECCIONAR_CUENTA_PAGO",
    "statement_month": "SELECCIONAR_RESUMEN",
    "stamp_tax": "FALTA_SELLOS",
}

# Main menu entries: (option key, label)
MENU_OPTIONS: List[Dict[str, str]] = [
    {"key": "gasto", "label": "💸 Registrar gasto"},
    {"key": "ingreso", "label": "💰 Registrar ingreso"},
    {"key": "transferencia", "label": "🔄 Transferir"},
    {"key": "pagar_tarjeta", "label": "💳 Pagar tarjeta"},
    {"key": "sellos", "label": "🧾 Agregar sellos"},
    {"key": "saldo", "label": "🏦 Ver saldos"},
    {"key": "gastos", "label": "📊 Consultar gastos"},
    {"key": "ingresos", "label": "📈 Consultar ingresos"},
    {"key": "ultimos", "label": "📋 Últimos movimientos"},
    {"key": "resumen", "label": "📅 Resumen del mes"},
    {"key": "tarjeta", "label": "🗓️ Resumen de tarjeta"},
    {"key": "presupuestos", "label": "🎯 Presupuestos"},
    {"key": "ayuda", "label": "❓ Ayuda"},
]

# Period choices offered by the guided spend/income query
PERIOD_OPTIONS: List[Dict[str, str]] = [
    {"key": "today", "label": "Hoy"},
    {"key": "this_week", "label": "Esta semana"},
    {"key": "this_month", "label": "Este mes"},
    {"key": "last_month", "label": "Mes pasado"},
]

NUMBER_EMOJIS = ["1️⃣", "2️⃣", "3️⃣", "4️⃣", "5️⃣", "6️⃣", "7️⃣", "8️⃣", "9️⃣", "🔟"]
