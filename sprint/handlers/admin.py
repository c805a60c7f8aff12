"""
Админ-команды: программы, уроки, апселл, статистика
"""

import functools
import logging
from telegram import Update
from telegram.ext import ContextTypes

from sprint.config import config
from sprint.database import queries as db
from sprint.errors import NotFound
from sprint.services.health import run_health_check
from sprint.states import Visibility

logger = logging.getLogger(__name__)


def admin_only(func):
    """Декоратор: только для админов"""
    @functools.wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE):
        user_id = update.effective_user.id
        if user_id not in config.ADMIN_IDS:
            await update.message.reply_text("Нет доступа")
            return
        return await func(update, context)
    return wrapper


def split_args(update: Update) -> list[str]:
    """'/add_program Имя | Описание' -> ['Имя', 'Описание']"""
    text = update.message.text or ""
    _, _, rest = text.partition(" ")
    if not rest.strip():
        return []
    return [part.strip() for part in rest.split("|")]


def parse_hours(value: str, default: int) -> int:
    """Часы из аргумента команды; пусто — значение по умолчанию"""
    if not value:
        return default
    hours = int(value)
    if hours < 0:
        raise ValueError("часы не могут быть отрицательными")
    return hours


@admin_only
async def stat_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Статистика: пользователи, оплатившие, завершившие, провалившие"""
    stats = await db.compute_stats()

    text = (
        "Статистика\n\n"
        f"Пользователей: {stats['users']}\n"
        f"С оплатой: {stats['paid']}\n"
        f"Прошли спринт: {stats['completed']}\n"
        f"Провалили: {stats['failed']}"
    )
    await update.message.reply_text(text)


@admin_only
async def programs_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Список программ"""
    programs = await db.get_all_programs()

    if not programs:
        await update.message.reply_text("Программ пока нет")
        return

    lines = [
        f"{'⭐' if p['is_active'] else '▫️'} #{p['id']} {p['name']} — уроков: {p['lessons_count']}"
        for p in programs
    ]
    await update.message.reply_text("Программы:\n" + "\n".join(lines))


@admin_only
async def add_program_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """/add_program Название | Описание"""
    args = split_args(update)
    if not args or not args[0]:
        await update.message.reply_text("Использование: /add_program Название | Описание")
        return

    description = args[1] if len(args) > 1 else ""
    program = await db.create_program(args[0], description)

    logger.info(f"Создана программа #{program.id}: {program.name}")
    await update.message.reply_text(
        f"Программа #{program.id} создана.\nСделать активной: /activate_program {program.id}"
    )


@admin_only
async def activate_program_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """/activate_program <id> — остальные программы становятся неактивными"""
    if not context.args or not context.args[0].isdigit():
        await update.message.reply_text("Использование: /activate_program <id>")
        return

    try:
        program = await db.activate_program(int(context.args[0]))
    except NotFound as e:
        await update.message.reply_text(e.message)
        return

    logger.info(f"Активная программа: #{program.id}")
    await update.message.reply_text(f"Активна программа #{program.id}: {program.name}")


@admin_only
async def lessons_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """/lessons <program_id> — уроки программы с настройками"""
    if not context.args or not context.args[0].isdigit():
        await update.message.reply_text("Использование: /lessons <program_id>")
        return

    lessons = await db.get_program_lessons(int(context.args[0]))
    if not lessons:
        await update.message.reply_text("Уроков нет")
        return

    lines = [
        f"#{l.id} [{l.order_index}] {l.title} — {l.visibility}, "
        f"задержка {l.delay_hours_from_previous}ч, окно {l.expires_in_hours}ч"
        for l in lessons
    ]
    await update.message.reply_text("\n".join(lines))


@admin_only
async def add_lesson_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """/add_lesson program_id | Название | FREE/PAID | задержка | окно"""
    args = split_args(update)
    usage = "Использование: /add_lesson program_id | Название | FREE/PAID | задержка_ч | окно_ч"
    if len(args) < 2 or not args[0].isdigit() or not args[1]:
        await update.message.reply_text(usage)
        return

    visibility = (args[2] if len(args) > 2 and args[2] else Visibility.FREE.value).upper()
    if visibility not in Visibility.__members__:
        await update.message.reply_text(f"Неизвестная видимость: {visibility}")
        return

    try:
        delay = parse_hours(args[3] if len(args) > 3 else "", 0)
        expires = parse_hours(args[4] if len(args) > 4 else "", config.DEFAULT_EXPIRES_IN_HOURS)
    except ValueError as e:
        await update.message.reply_text(f"Некорректные часы: {e}\n\n{usage}")
        return

    try:
        lesson = await db.create_lesson(
            program_id=int(args[0]),
            title=args[1],
            visibility=visibility,
            delay_hours_from_previous=delay,
            expires_in_hours=expires
        )
    except NotFound as e:
        await update.message.reply_text(e.message)
        return

    logger.info(f"Создан урок #{lesson.id} в программе {lesson.program_id}")
    await update.message.reply_text(
        f"Урок #{lesson.id} добавлен на позицию {lesson.order_index}"
    )


@admin_only
async def set_visibility_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """/set_visibility <lesson_id> <FREE|PAID|ARCHIVED>"""
    if len(context.args) < 2 or not context.args[0].isdigit():
        await update.message.reply_text("Использование: /set_visibility <lesson_id> <FREE|PAID|ARCHIVED>")
        return

    visibility = context.args[1].upper()
    if visibility not in Visibility.__members__:
        await update.message.reply_text(f"Неизвестная видимость: {visibility}")
        return

    try:
        lesson = await db.set_lesson_visibility(int(context.args[0]), visibility)
    except NotFound as e:
        await update.message.reply_text(e.message)
        return

    await update.message.reply_text(f"Урок #{lesson.id}: {lesson.visibility}")


@admin_only
async def move_lesson_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """/move_lesson <lesson_id> <up|down>"""
    if (
        len(context.args) < 2
        or not context.args[0].isdigit()
        or context.args[1] not in ("up", "down")
    ):
        await update.message.reply_text("Использование: /move_lesson <lesson_id> <up|down>")
        return

    try:
        moved = await db.move_lesson(int(context.args[0]), context.args[1])
    except NotFound as e:
        await update.message.reply_text(e.message)
        return

    await update.message.reply_text("Порядок обновлён" if moved else "Урок уже крайний")


@admin_only
async def upsell_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """/upsell Заголовок | Текст | Кнопка | URL — без аргументов показывает текущий"""
    args = split_args(update)

    if not args:
        upsell = await db.get_upsell()
        if not upsell:
            await update.message.reply_text("Апселл не настроен")
            return
        await update.message.reply_text(
            f"{upsell.title}\n\n{upsell.text}\n\n[{upsell.button_label}] {upsell.button_url}",
            disable_web_page_preview=True
        )
        return

    if len(args) < 4:
        await update.message.reply_text("Использование: /upsell Заголовок | Текст | Кнопка | URL")
        return

    await db.save_upsell(*args[:4])
    await update.message.reply_text("Апселл сохранён")


@admin_only
async def health_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Состояние бота: конфигурация и база"""
    report = await run_health_check()

    lines = [f"Статус: {report.status}"]
    for name, check in report.checks.items():
        mark = "✓" if check.ok else "✗"
        line = f"{mark} {name}"
        if check.message:
            line += f": {check.message}"
        if check.ok and check.details:
            line += " (" + ", ".join(f"{k}={v}" for k, v in check.details.items()) + ")"
        lines.append(line)

    await update.message.reply_text("\n".join(lines))
