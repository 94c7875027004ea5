import pandas as pd
from sklearn.linear_model import LinearRegression

from models import Product, Transaction


def _query_user_df(user_id):
    # Build a DataFrame of the shop's transactions
    rows = Transaction.query.filter(Transaction.user_id == user_id).all()
    if not rows:
        return pd.DataFrame(columns=['date', 'amount', 'type', 'category'])
    data = [{
        'date': r.date,
        'amount': float(r.amount),
        'type': r.type,
        'category': r.category
    } for r in rows]
    df = pd.DataFrame(data)
    df['date'] = pd.to_datetime(df['date'])
    return df


def _monthly_expenses(df):
    expenses = df[df['type'] == 'expense'].copy()
    if expenses.empty:
        return pd.Series(dtype=float)
    expenses['ym'] = expenses['date'].dt.to_period('M').astype(str)
    return expenses.groupby('ym')['amount'].sum()


def predict_next_month_expense(user_id):
    df = _query_user_df(user_id)
    if df.empty:
        return 0.0
    monthly = _monthly_expenses(df)
    if monthly.empty:
        return 0.0
    if len(monthly) < 2:
        # Not enough data to fit
        return float(monthly.iloc[-1])
    m = monthly.reset_index()
    # Turn months into an integer index
    m['idx'] = range(1, len(m) + 1)
    X = m[['idx']].values
    y = m['amount'].values
    model = LinearRegression().fit(X, y)
    next_idx = m['idx'].max() + 1
    pred = float(model.predict([[next_idx]])[0])
    return max(pred, 0.0)


def generate_recommendations(user_id):
    df = _query_user_df(user_id)
    recs = []
    low_stock = [
        p.name for p in Product.query.filter_by(user_id=user_id).order_by(Product.stock).all()
        if p.stock <= p.min_stock_level
    ]
    if low_stock:
        recs.append(f'Restock soon: {", ".join(low_stock[:5])} at or below the minimum stock level.')
    if df.empty:
        recs.append('Add at least 2 months of transactions to get business insights.')
        return recs
    total_income = df[df['type'] == 'income']['amount'].sum()
    total_expense = df[df['type'] == 'expense']['amount'].sum()
    if total_income > 0:
        margin = (total_income - total_expense) / total_income
        recs.append(f'Your overall profit margin is {margin*100:.1f}%.')
    else:
        recs.append('Add sales entries to compute your profit margin.')
    # Top 3 spend categories
    cat = df[df['type'] == 'expense'].groupby('category')['amount'].sum().sort_values(ascending=False)
    for c, v in cat.head(3).items():
        recs.append(f'High spend in "{c}": ₹{v:.0f}. Check whether it can be reduced.')
    monthly = _monthly_expenses(df)
    if len(monthly) >= 2:
        last = monthly.iloc[-1]
        prev_avg = monthly.iloc[:-1].mean()
        if last > 1.2 * prev_avg:
            recs.append("Last month's expenses exceeded your previous average by 20%+.")
    pred = predict_next_month_expense(user_id)
    recs.append(f'Predicted next month expense: ₹{pred:.0f}.')
    return recs
