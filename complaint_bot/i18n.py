"""Static string table for user- and admin-facing messages.

Templates use named fields (``{complaint_id}``) and are looked up by locale
tag. Missing locales or keys fall back to the primary locale, so admin-only
strings are only written once.
"""

from typing import Any, Dict, Optional

PRIMARY_LANGUAGE = "uz"
SUPPORTED_LANGUAGES = ("uz", "ru")
LANGUAGE_NAMES = {"uz": "O'zbekcha", "ru": "Русский"}

STRINGS: Dict[str, Dict[str, str]] = {
    "uz": {
        # Wizard prompts
        "askName": "📝 Ism-familiyangizni yozing (masalan: Ali Valiev):",
        "invalidName": "🚫 Iltimos, ism-familiyangizni to‘g‘ri yozing (3 harfdan ko‘p).",
        "askAddress": "🏠 Yashash manzilingizni yozing (shahar, tuman, mahalla – masalan: Toshkent, Chilanzor tumani, Olmazor mahallasi):",
        "invalidAddress": "🚫 Iltimos, manzilingizni to‘g‘ri yozing (kamida 3 ta harf).",
        "askPhone": "📞 Telefon raqamingizni yozing (masalan: +998901234567) yoki pastdagi tugma orqali ulashing:",
        "invalidPhone": "🚫 Raqam +998 bilan boshlanib, 9 ta raqam bo‘lsin.",
        "shareContact": "📞 Raqamni ulashish",
        "phoneSaved": "✅ Raqam qabul qilindi.",
        "askNationalId": "🪪 Pasport seriya va raqamini yozing (masalan: AA1234567):",
        "invalidNationalId": "🚫 Pasport 2 ta katta harf va 7 ta raqamdan iborat bo‘lsin (masalan: AA1234567).",
        "askSection": "📂 Murojaatingiz bo‘limini tanlang:",
        "askSummary": "📋 Murojaatingizni qisqacha yozing:",
        "invalidSummary": "🚫 Iltimos, kamida 5 ta harf yozing.",
        "askMedia": "📸 Rasm yoki video yuboring yoki 'Tayyor' tugmasini bosing:",
        "mediaReceived": "✅ Fayl qabul qilindi! Yana yuborasizmi yoki 'Tayyor'?",
        "invalidMedia": "🚫 Faqat rasm yoki video yuboring yoki 'Tayyor'ni bosing.",
        "doneButton": "✅ Tayyor",
        "confirm": (
            "📝 Ma'lumotlarni tekshiring:\n\n"
            "👤 Ism: {full_name}\n"
            "🏠 Manzil: {address}\n"
            "📞 Telefon: {phone}\n"
            "{national_id_line}"
            "📂 Bo‘lim: {section}\n"
            "📋 Murojaat: {summary}\n"
            "📸 Fayllar: {media_count}\n\n"
            "Hammasi to‘g‘rimi?"
        ),
        "nationalIdLine": "🪪 Pasport: {national_id}\n",
        "mediaCount": "{count} ta",
        "mediaNone": "Yo‘q",
        "submitButton": "✅ Yuborish",
        "editButton": "✏️ Tahrirlash",
        "back": "⬅️ Orqaga",
        "cancelButton": "❌ Bekor qilish",
        "cancelled": "❌ Murojaat bekor qilindi. Yangi murojaat uchun /start ni bosing.",
        "success": (
            "✅ Murojaatingiz muvaffaqiyatli qabul qilindi! ID: {complaint_id}\n\n"
            "⏰ Murojaatingiz qonuniy tartibda 15-30 ish kuni ichida mas’ul tashkilotlar "
            "tomonidan ko‘rib chiqiladi va sizga javob taqdim etiladi.\n\n"
            "🤝 Diqqat va ishonchingiz uchun rahmat!"
        ),
        "partialSuccess": "⚠️ Murojaat #{complaint_id} saqlandi, lekin xatolar bor: {targets}",
        "submitFailed": "🚫 Murojaat yuborishda xato! Iltimos, qayta 'Yuborish' tugmasini bosing.",
        "rateLimit": "⏳ 1 daqiqa kuting, xabarlar ko‘p bo‘ldi.",
        "offensiveWarning": "⚠️ Xabaringizda noqabul so'zlar mavjud. Iltimos, adabiy til ishlating!",
        "blockedUser": "🚫 Siz ushbu botdan foydalanish huquqidan mahrum qilindingiz!",
        "genericError": "⚠️ Xatolik yuz berdi. Iltimos, birozdan so‘ng qayta urinib ko‘ring.",
        "unknownCommand": "🤔 Bunday buyruq yo‘q. /help orqali buyruqlar ro‘yxatini ko‘ring.",
        # Submitter commands
        "myComplaints": "📋 Sizning murojaatlaringiz:\n\n{items}",
        "myComplaintsItem": "ID: {complaint_id}\nBo'lim: {section}\nMurojaat: {summary}\nHolati: {status}\nVaqt: {created_at}",
        "noUserComplaints": "🚫 Murojaatlaringiz yo‘q.",
        "editUsage": "🚫 /edit <murojaat_id> shaklida yozing",
        "editComplaint": "✏️ Yangi murojaat matnini yozing:",
        "editSuccess": "✅ Murojaat #{complaint_id} o‘zgartirildi!",
        "editFailed": "🚫 Tahrirlashda xato! Iltimos, qayta urinib ko‘ring.",
        "complaintNotFound": "🚫 Murojaat topilmadi!",
        "statusUpdated": "✅ Murojaat #{complaint_id} holati: {status}",
        "reminder": "📬 Murojaat ID: {complaint_id} hali kutilyapti.",
        "languagePrompt": "Tilni tanlang / Выберите язык:",
        "languageChanged": "✅ Til O'zbekchaga o'zgartirildi!",
        "help": (
            "ℹ️ Botdan foydalanish qo'llanmasi\n\n"
            "/start - Yangi murojaat yuborish\n"
            "/mycomplaints - Mening murojaatlarim\n"
            "/edit <ID> - Murojaatni tahrirlash\n"
            "/language - Tilni o'zgartirish\n"
            "/cancel - Joriy murojaatni bekor qilish\n"
            "/help - Yordam olish\n\n"
            "⚠️ Diqqat: Har bir murojaat qonuniy tartibda 15-30 ish kuni ichida ko'rib chiqiladi."
        ),
        "replyMessage": "📨 Admin javobi (#{complaint_id}):\n\n{text}",
        "broadcastMessage": "📢 Admin xabari: {message}",
        # Admin
        "invalidCommand": "🚫 Faqat admin uchun!",
        "adminDashboard": "📊 Admin paneli:\n\n📬 Jami: {total}\n⏳ Kutilyapti: {pending}\n🔄 Jarayonda: {in_progress}\n✅ Yakunlangan: {resolved}",
        "exportReport": "📥 Xisobotni yuklash",
        "broadcastButton": "📢 Broadcast",
        "noComplaints": "🚫 Murojaatlar yo‘q.",
        "filterHeader": "📂 {section} bo'limi:\n\n",
        "filterItem": "ID: {complaint_id}\nIsm: {full_name}\nHolati: {status}\nVaqt: {created_at}\n\n",
        "invalidStatusId": "🚫 /status <murojaat_id> <holat> shaklida yozing (Pending, In Progress, Resolved)",
        "adminStatusUpdated": "✅ Murojaat #{complaint_id} holati: {old_status} → {status}",
        "assignUsage": "🚫 /assign <murojaat_id> <xodim> shaklida yozing",
        "assignSuccess": "✅ #{complaint_id} murojaati {assignee} ga biriktirildi!",
        "deleteUsage": "🚫 /delete <murojaat_id> shaklida yozing",
        "deleteSuccess": "✅ Murojaat #{complaint_id} o'chirildi!",
        "blockUsage": "🚫 /block <user_id> <sabab> shaklida yozing",
        "blockSuccess": "✅ Foydalanuvchi #{user_id} bloklandi!",
        "replyUsage": "🚫 /reply <murojaat_id> <javob> shaklida yozing",
        "replySent": "✅ Javob #{complaint_id} murojaatiga yuborildi!",
        "replyFailed": "🚫 Foydalanuvchiga javob yuborish mumkin emas!",
        "commentUsage": "🚫 /comment <murojaat_id> <izoh> shaklida yozing",
        "commentAdded": "✅ #{complaint_id} murojaatiga izoh qo'shildi!",
        "viewUsage": "🚫 /view <murojaat_id> shaklida yozing",
        "commentLine": "💬 {created_at} ({admin_id}): {text}",
        "noComments": "💬 Izohlar yo‘q.",
        "statsToday": "📊 Bugungi statistika ({day}):\n\n• Yangi murojaatlar: {today}\n• Jami murojaatlar: {total}",
        "weeklyStats": "📈 Haftalik hisobot:\n\n• Yangi murojaatlar: {count}",
        "exportSuccess": "✅ Xisobot yuklandi!",
        "exportFailed": "🚫 Xisobot yuklashda xato!",
        "autoReport": "📥 Avtomatik xisobot yuklandi!",
        "broadcastPrompt": "📢 Admin nomidan xabar yozing:",
        "broadcastConfirm": "📢 Xabar: {message}\n\nYuborishni tasdiqlang:",
        "broadcastSendButton": "📢 Yuborish",
        "broadcastEmpty": "🚫 Iltimos, avval xabar yozing!",
        "broadcastSuccess": "✅ Xabar barcha foydalanuvchilarga va guruhga yuborildi!",
        "broadcastPartial": "⚠️ Xabar yuborildi, lekin {count} chatda xato: {targets}",
        "broadcastError": "🚫 Xabar yuborishda xato yuz berdi.",
        "broadcastCancelled": "🚫 Broadcast bekor qilindi.",
        "offensiveAdminNotice": "🚨 Xaqoratli xabar:\n\nFoydalanuvchi: @{handle} ({user_id})\nXabar: {text}",
        "editNotice": "✏️ Murojaat #{complaint_id} o‘zgartirildi: {summary}",
        "membershipLost": "🚫 Bot guruhdan chiqarilgan yoki guruhga ulanib bo‘lmadi!",
        "groupAnnouncement": (
            "Hurmatli fuqarolar!\n"
            "Endilikda murojaatlaringizni {bot_mention} Telegram boti orqali yuborishingiz mumkin.\n"
            "Bu sizning murojaatingizni tezroq ko‘rib chiqish va hal qilishga yordam beradi."
        ),
        "groupAnnouncementFailed": "🚫 Guruhga ({group_id}) avtomatik xabar yuborishda xato!",
        "statusReport": "🖥 Bot holati:\n\n• Ishlash vaqti: {hours} soat {minutes} daqiqa\n• Faol suhbatlar: {sessions}\n• Jami murojaatlar: {total}",
        "auditHeader": "🧾 So‘nggi amallar:\n\n",
        "auditLine": "{created_at} | {actor_id} | {action} | {details}",
        "auditEmpty": "🧾 Amallar jurnali bo‘sh.",
        "complaintCard": (
            "📝 <b>Murojaat ID: {complaint_id}</b>\n"
            "👤 Ism: {full_name}\n"
            "📛 Username: @{handle}\n"
            "🏠 Manzil: {address}\n"
            "📞 Telefon: {phone}\n"
            "{national_id_line}"
            "📂 Bo'lim: {section}\n"
            "📋 Murojaat: {summary}\n"
            "📅 Vaqt: {created_at}\n"
            "📸 Fayllar: {media_count}"
        ),
        "complaintDetail": (
            "📝 Murojaat ID: {complaint_id}\n"
            "👤 {full_name} (@{handle}, {submitter_id})\n"
            "📞 {phone}\n"
            "📂 {section}\n"
            "📋 {summary}\n"
            "📌 Holati: {status}\n"
            "🧑‍💼 Xodim: {assignee}\n"
            "📅 {created_at}"
        ),
        "unassigned": "Belgilanmagan",
        "unknownHandle": "Noma'lum",
    },
    "ru": {
        "askName": "📝 Введите ваше имя и фамилию (например: Али Валиев):",
        "invalidName": "🚫 Пожалуйста, введите имя и фамилию правильно (более 3 символов).",
        "askAddress": "🏠 Где вы проживаете? (например: Ташкент, Чиланзар):",
        "invalidAddress": "🚫 Пожалуйста, введите адрес правильно (не менее 3 символов).",
        "askPhone": "📞 Введите номер телефона (например: +998901234567) или поделитесь контактом кнопкой ниже:",
        "invalidPhone": "🚫 Номер должен начинаться с +998 и содержать 9 цифр.",
        "shareContact": "📞 Поделиться номером",
        "phoneSaved": "✅ Номер принят.",
        "askNationalId": "🪪 Введите серию и номер паспорта (например: AA1234567):",
        "invalidNationalId": "🚫 Паспорт: 2 заглавные буквы и 7 цифр (например: AA1234567).",
        "askSection": "📂 Выберите раздел вашего обращения:",
        "askSummary": "📋 Кратко опишите ваше обращение:",
        "invalidSummary": "🚫 Пожалуйста, введите не менее 5 символов.",
        "askMedia": "📸 Отправьте фото или видео или нажмите 'Готово':",
        "mediaReceived": "✅ Файл получен! Отправить еще или нажать 'Готово'?",
        "invalidMedia": "🚫 Отправляйте только фото или видео или нажмите 'Готово'.",
        "doneButton": "✅ Готово",
        "confirm": (
            "📝 Проверьте данные:\n\n"
            "👤 Имя: {full_name}\n"
            "🏠 Адрес: {address}\n"
            "📞 Телефон: {phone}\n"
            "{national_id_line}"
            "📂 Раздел: {section}\n"
            "📋 Обращение: {summary}\n"
            "📸 Файлы: {media_count}\n\n"
            "Все верно?"
        ),
        "nationalIdLine": "🪪 Паспорт: {national_id}\n",
        "mediaCount": "{count} шт.",
        "mediaNone": "Нет",
        "submitButton": "✅ Отправить",
        "editButton": "✏️ Изменить",
        "back": "⬅️ Назад",
        "cancelButton": "❌ Отмена",
        "cancelled": "❌ Обращение отменено. Для нового обращения нажмите /start.",
        "success": "✅ Ваше обращение успешно принято! ID: {complaint_id}\n⏰ Обращение будет рассмотрено в течение 15-30 рабочих дней.",
        "partialSuccess": "⚠️ Обращение #{complaint_id} сохранено, но возникли ошибки: {targets}",
        "submitFailed": "🚫 Ошибка при отправке обращения! Нажмите 'Отправить' еще раз.",
        "rateLimit": "⏳ Подождите 1 минуту, слишком много сообщений.",
        "offensiveWarning": "⚠️ В вашем сообщении содержатся недопустимые слова. Пожалуйста, используйте корректный язык!",
        "blockedUser": "🚫 Вы заблокированы и не можете использовать этого бота!",
        "genericError": "⚠️ Произошла ошибка. Пожалуйста, попробуйте позже.",
        "unknownCommand": "🤔 Неизвестная команда. Список команд: /help",
        "myComplaints": "📋 Ваши обращения:\n\n{items}",
        "myComplaintsItem": "ID: {complaint_id}\nРаздел: {section}\nОбращение: {summary}\nСтатус: {status}\nВремя: {created_at}",
        "noUserComplaints": "🚫 У вас нет обращений.",
        "editUsage": "🚫 Используйте формат /edit <ID обращения>",
        "editComplaint": "✏️ Введите новый текст обращения:",
        "editSuccess": "✅ Обращение #{complaint_id} изменено!",
        "editFailed": "🚫 Ошибка при изменении! Попробуйте еще раз.",
        "complaintNotFound": "🚫 Обращение не найдено!",
        "statusUpdated": "✅ Статус обращения #{complaint_id}: {status}",
        "reminder": "📬 Обращение ID: {complaint_id} все еще ожидает рассмотрения.",
        "languageChanged": "✅ Язык изменен на Русский!",
        "help": (
            "ℹ️ Руководство по использованию бота\n\n"
            "/start - Подать новое обращение\n"
            "/mycomplaints - Мои обращения\n"
            "/edit <ID> - Редактировать обращение\n"
            "/language - Сменить язык\n"
            "/cancel - Отменить текущее обращение\n"
            "/help - Получить помощь\n\n"
            "⚠️ Внимание: Каждое обращение рассматривается в течение 15-30 рабочих дней."
        ),
        "replyMessage": "📨 Ответ администратора (#{complaint_id}):\n\n{text}",
        "broadcastMessage": "📢 Сообщение администратора: {message}",
        "invalidCommand": "🚫 Только для администратора!",
        "unassigned": "Не назначен",
        "unknownHandle": "Неизвестно",
    },
}


def normalize_language(language: Optional[str]) -> str:
    if language in STRINGS:
        return language
    return PRIMARY_LANGUAGE


def t(language: Optional[str], key: str, **fields: Any) -> str:
    """Render template `key` in `language` with named `fields`."""
    table = STRINGS.get(normalize_language(language), {})
    template = table.get(key)
    if template is None:
        template = STRINGS[PRIMARY_LANGUAGE][key]
    return template.format(**fields)


__all__ = [
    "PRIMARY_LANGUAGE",
    "SUPPORTED_LANGUAGES",
    "LANGUAGE_NAMES",
    "STRINGS",
    "normalize_language",
    "t",
]
