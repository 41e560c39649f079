from __future__ import annotations

TEMPLATES: dict[str, str] = {
    "order_confirmed": (
        "*🛒 تم استلام طلبك*\n\n"
        "أهلاً _{customer_name}_ 👋\n"
        "تم استلام طلبك بنجاح.\n\n"
        "*رقم الطلب:* `{order_number}`\n"
        "*الإجمالي:* *{order_total} جنيه*\n\n"
        "الطلبات:\n{items}\n\n"
        "تابع طلبك من هنا: {tracking_url}\n"
        "شكراً لثقتك 🙏"
    ),
    "new_order_seller": (
        "*📥 طلب جديد*\n\n"
        "*رقم الطلب:* `{order_number}`\n"
        "العميل: {customer_name}\n"
        "الإجمالي: *{order_total} جنيه*\n\n"
        "ادخل الداشبورد لإدارة الطلب."
    ),
    "order_status_confirmed": (
        "*✅ تم تأكيد طلبك*\n\n"
        "أهلاً _{customer_name}_،\n"
        "طلبك رقم `{order_number}` اتأكد وجاري تجهيزه.\n"
        "تابع طلبك من هنا: {tracking_url}"
    ),
    "order_out_for_delivery": (
        "*🚚 الطلب في الطريق*\n\n"
        "أهلاً _{customer_name}_ 👋\n\n"
        "طلبك رقم `{order_number}` خرج للتوصيل.\n\n"
        "يرجى تجهيز المبلغ عند الاستلام 💵"
    ),
    "order_delivered": (
        "*✅ تم تسليم الطلب*\n\n"
        "أهلاً _{customer_name}_ 🙌\n\n"
        "تم تسليم طلبك رقم `{order_number}`.\n"
        "نتمنى تكون راضي عن الخدمة 💚"
    ),
    "order_cancelled": (
        "*❌ تم إلغاء الطلب*\n\n"
        "أهلاً _{customer_name}_،\n\n"
        "تم إلغاء الطلب رقم `{order_number}`.\n\n"
        "لو محتاج أي مساعدة كلمنا في أي وقت."
    ),
    "merchant_order_rejected": (
        "تم رفض الطلب من العميل.\n\n"
        "رقم الطلب: {order_number}\n"
        "العميل: {customer_name}\n"
        "سبب الرفض: {reason}"
    ),
    "order_product_replacement": (
        "تم تعديل بعض المنتجات في طلبك رقم {order_number} من متجر {store_name}.\n\n"
        "المنتج الأصلي: {original_title}\n"
        "المنتج البديل: {replacement_title}\n\n"
        "إجمالي الطلب قبل التعديل: {order_total} جنيه.\n\n"
        "يمكنك الموافقة أو الرفض من خلال رابط تتبع الطلب: {tracking_url}"
    ),
    "merchant_replacement_accepted": (
        "تمت الموافقة على استبدال منتج.\n\n"
        "رقم الطلب: {order_number}\n"
        "العميل: {customer_name}\n"
        "المنتج الأصلي: {original_title}\n"
        "البديل المقبول: {replacement_title}"
    ),
    "merchant_replacement_rejected": (
        "تم رفض استبدال منتج.\n\n"
        "رقم الطلب: {order_number}\n"
        "العميل: {customer_name}\n"
        "المنتج الأصلي: {original_title}\n"
        "البديل المرفوض: {replacement_title}\n"
        "سبب الرفض: {reason}"
    ),
    "merchant_day_closure_summary": (
        "ملخص إغلاق اليوم لتاريخ {closure_date} - {store_name}\n\n"
        "عدد الطلبات: {orders_count}\n"
        "طلبات مكتملة: {completed_count}\n"
        "طلبات ملغاة: {cancelled_count}\n"
        "إجمالي المبيعات: {completed_sales_total} جنيه"
    ),
}
